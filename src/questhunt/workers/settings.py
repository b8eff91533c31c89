"""arq worker settings module.

Import path for arq CLI: arq questhunt.workers.settings.WorkerSettings
"""

from __future__ import annotations

from questhunt.workers.import_worker import ImportWorkerSettings as WorkerSettings

__all__ = ["WorkerSettings"]
