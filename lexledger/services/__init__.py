from .conflicts import ConflictService
from .trust import TrustLedgerService

__all__ = ['ConflictService', 'TrustLedgerService']
