"""
Plain records passed between the settlement calculators.

Models are converted into these once, at the service boundary, so the
calculators stay pure and never touch the ORM.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Member:
    id: str
    display_name: str


@dataclass(frozen=True)
class PaymentInput:
    """A payment split equally across the whole roster."""
    payer_id: str
    amount: int


@dataclass(frozen=True)
class SplitPaymentInput:
    """A payment whose owed shares are given explicitly (user id -> amount)."""
    payer_id: str
    amount: int
    splits: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class EntryInput:
    """A filled settlement entry as seen by the balance calculator."""
    payer_id: Optional[str]
    amount: int
    split_type: str = 'equal'
    splits: Dict[str, int] = field(default_factory=dict)


@dataclass
class MemberBalance:
    member_id: str
    display_name: str
    total_paid: int = 0
    total_owed: int = 0
    balance: int = 0


@dataclass(frozen=True)
class Transfer:
    """A single debtor -> creditor payment instruction."""
    from_id: str
    from_name: str
    to_id: str
    to_name: str
    amount: int

    def to_dict(self) -> dict:
        """Shape stored in SettlementSession.net_transfers."""
        return {
            'from_id': str(self.from_id),
            'from_name': self.from_name,
            'to_id': str(self.to_id),
            'to_name': self.to_name,
            'amount': self.amount,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Transfer':
        return cls(
            from_id=data['from_id'],
            from_name=data.get('from_name', ''),
            to_id=data['to_id'],
            to_name=data.get('to_name', ''),
            amount=data['amount'],
        )


@dataclass
class SettlementResult:
    settlements: List[Transfer]
    unsettled_remainder: float = 0
