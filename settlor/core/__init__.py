"""settlor.core: results, errors, identities and checked arithmetic."""

from settlor.core.errors import AuthorizationError as AuthorizationError
from settlor.core.errors import CalculationError as CalculationError
from settlor.core.errors import ConservationViolationError as ConservationViolationError
from settlor.core.errors import ErrorCode as ErrorCode
from settlor.core.errors import FieldViolation as FieldViolation
from settlor.core.errors import IllegalTransitionError as IllegalTransitionError
from settlor.core.errors import PersistenceError as PersistenceError
from settlor.core.errors import PriceFeedError as PriceFeedError
from settlor.core.errors import SettlorError as SettlorError
from settlor.core.errors import TimingError as TimingError
from settlor.core.errors import TransferError as TransferError
from settlor.core.errors import ValidationError as ValidationError
from settlor.core.fixed_point import U64_MAX as U64_MAX
from settlor.core.fixed_point import U128_MAX as U128_MAX
from settlor.core.fixed_point import checked_add as checked_add
from settlor.core.fixed_point import checked_div as checked_div
from settlor.core.fixed_point import checked_mul as checked_mul
from settlor.core.fixed_point import checked_sub as checked_sub
from settlor.core.fixed_point import saturating_sub as saturating_sub
from settlor.core.party import PartyKey as PartyKey
from settlor.core.result import Err as Err
from settlor.core.result import Ok as Ok
from settlor.core.result import Result as Result
from settlor.core.result import sequence as sequence
from settlor.core.result import unwrap as unwrap
from settlor.core.serialization import canonical_bytes as canonical_bytes
from settlor.core.serialization import content_hash as content_hash
from settlor.core.serialization import derive_contract_id as derive_contract_id
from settlor.core.types import UtcDatetime as UtcDatetime
