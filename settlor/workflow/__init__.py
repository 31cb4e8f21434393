"""settlor.workflow -- Temporal.io settlement keeper."""

from settlor.workflow.types import KeeperInput as KeeperInput
from settlor.workflow.types import KeeperResult as KeeperResult
