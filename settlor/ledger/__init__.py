"""settlor.ledger: settlement, exercise, transfers and the custody ledger."""

from settlor.ledger.engine import CustodyLedger as CustodyLedger
from settlor.ledger.exercise import ExerciseReport as ExerciseReport
from settlor.ledger.exercise import exercise as exercise
from settlor.ledger.exercise import intrinsic_payoff as intrinsic_payoff
from settlor.ledger.history import ContractEvent as ContractEvent
from settlor.ledger.history import HistorySummary as HistorySummary
from settlor.ledger.history import summarize as summarize
from settlor.ledger.options import OperationKind as OperationKind
from settlor.ledger.options import Transition as Transition
from settlor.ledger.options import daily_settlement as daily_settlement
from settlor.ledger.options import delist_option as delist_option
from settlor.ledger.options import exercise_option as exercise_option
from settlor.ledger.options import expire_option as expire_option
from settlor.ledger.options import initialize_option as initialize_option
from settlor.ledger.options import purchase_option as purchase_option
from settlor.ledger.options import resell_option as resell_option
from settlor.ledger.settlement import SettlementReport as SettlementReport
from settlor.ledger.settlement import settle_daily as settle_daily
from settlor.ledger.transactions import Account as Account
from settlor.ledger.transactions import AccountType as AccountType
from settlor.ledger.transactions import Transfer as Transfer
from settlor.ledger.transactions import TransferBatch as TransferBatch
from settlor.ledger.transfers import custody_account as custody_account
from settlor.ledger.transfers import party_account as party_account
