# MIT License
# Copyright (c) 2025 Hashborn

from pydantic import BaseModel, Field
from typing import Dict, Any
from ..crypto.hash import canonical_hash
from ..crypto.keys import sign as crypto_sign
from .common import OpType


class Call(BaseModel):
    """A signed request to execute one ledger operation."""
    op_type: OpType
    caller: str                 # Bech32 address derived from pub_key
    nonce: int
    args: Dict[str, Any] = Field(default_factory=dict)  # e.g. {"amount": 100}
    signature: str = ""         # hex ECDSA over hash()
    pub_key: str = ""           # hex compressed public key

    def hash(self) -> str:
        return canonical_hash({
            "op_type": self.op_type.value,
            "caller": self.caller,
            "nonce": self.nonce,
            "args": self.args,
            "pub_key": self.pub_key,
        }).hex()

    def sign(self, priv_key_bytes: bytes):
        """Signs the call hash."""
        msg_hash = bytes.fromhex(self.hash())
        self.signature = crypto_sign(msg_hash, priv_key_bytes).hex()
