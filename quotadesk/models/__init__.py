from quotadesk.models.app_snapshot import AppSnapshot  # noqa: F401
