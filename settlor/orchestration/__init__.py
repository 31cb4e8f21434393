"""settlor.orchestration: commit sequencing over store, rail and history."""

from settlor.orchestration.desk import OptionDesk as OptionDesk
