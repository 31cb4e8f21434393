"""settlor.contract: contract record, persisted layout and lifecycle."""

from settlor.contract.codec import decode_record as decode_record
from settlor.contract.codec import encode_record as encode_record
from settlor.contract.lifecycle import CONTRACT_TRANSITIONS as CONTRACT_TRANSITIONS
from settlor.contract.lifecycle import check_transition as check_transition
from settlor.contract.types import TERMINAL_STATUSES as TERMINAL_STATUSES
from settlor.contract.types import ContractRecord as ContractRecord
from settlor.contract.types import ContractStatus as ContractStatus
from settlor.contract.types import OptionKind as OptionKind
