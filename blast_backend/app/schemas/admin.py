from blast_backend.app.schemas.jobs import CamelModel, StoreStatsOut


class MappingStatsOut(CamelModel):
    loaded: bool
    total_records: int
    accepted: int
    skipped: int


class RefreshOut(CamelModel):
    refreshed: bool
    mappings: MappingStatsOut


class DatabaseInfoOut(CamelModel):
    valid: bool
    path: str
    type: str
    files_present: bool
    database: str
    total_sequences: int
    database_version: str


class HealthOut(CamelModel):
    status: str = "healthy"
    timestamp: str
    database: str
    version: str
    index_ready: bool
    mappings_loaded: bool
    jobs: StoreStatsOut
