"""
Call receipt tracking.

Stores the outcome of every call submitted to the host for querying.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import logging
from threading import RLock

logger = logging.getLogger(__name__)


@dataclass
class CallReceipt:
    """
    Outcome of one submitted call.

    Attributes:
        call_hash: Hash of the signed call
        op_type: Operation name
        caller: Caller address
        status: 'applied' or 'failed'
        sequence: Position in the host's global order (None if rejected before ordering)
        timestamp: Committed timestamp the call executed at
        error: Error type and message if the call failed
        result: Operation return value, if any
    """
    call_hash: str
    op_type: str
    caller: str
    status: str
    sequence: Optional[int] = None
    timestamp: int = 0
    error: Optional[str] = None
    result: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == 'applied'

    def to_dict(self) -> dict:
        return {
            "call_hash": self.call_hash,
            "op_type": self.op_type,
            "caller": self.caller,
            "status": self.status,
            "sequence": self.sequence,
            "timestamp": self.timestamp,
            "error": self.error,
            "result": self.result,
        }


class ReceiptStore:
    """Thread-safe in-memory receipt store with oldest-first eviction."""

    def __init__(self, max_receipts: int = 10000):
        self.receipts: Dict[str, CallReceipt] = {}
        self.max_receipts = max_receipts
        self.lock = RLock()

    def add(self, receipt: CallReceipt) -> CallReceipt:
        with self.lock:
            self.receipts[receipt.call_hash] = receipt
            if len(self.receipts) > self.max_receipts:
                self._cleanup_old_receipts()
            logger.debug(f"Stored {receipt.status} receipt: {receipt.call_hash[:16]}...")
            return receipt

    def get(self, call_hash: str) -> Optional[CallReceipt]:
        with self.lock:
            return self.receipts.get(call_hash)

    def _cleanup_old_receipts(self) -> None:
        """Removes the oldest 10% of receipts."""
        num_to_remove = max(len(self.receipts) // 10, 1)

        # Insertion order is execution order
        for call_hash in list(self.receipts.keys())[:num_to_remove]:
            del self.receipts[call_hash]

        logger.info(f"Cleaned up {num_to_remove} old receipts (total: {len(self.receipts)})")

    def clear(self) -> None:
        with self.lock:
            self.receipts.clear()

    def __len__(self) -> int:
        with self.lock:
            return len(self.receipts)
