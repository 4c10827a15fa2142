"""Pydantic schemas for database connection configs and responses."""
from typing import Literal, Optional
from urllib.parse import quote_plus

from pydantic import BaseModel, Field

Dialect = Literal["sqlite", "postgres", "mysql", "mssql"]

DEFAULT_PORTS = {"postgres": 5432, "mysql": 3306, "mssql": 1433}


class DatabaseConfig(BaseModel):
    dialect: Dialect = Field(..., description="Database engine type")

    # SQLite: path to the .db file
    database: str = Field(..., description="Database name, or file path for SQLite")

    # Server dialects only
    host: Optional[str] = Field(None, description="Database host")
    port: Optional[int] = Field(None, description="Database port (dialect default when omitted)")
    user: Optional[str] = Field(None, description="Username")
    password: Optional[str] = Field(None, description="Password")

    @property
    def is_sqlite(self) -> bool:
        return self.dialect == "sqlite"

    def get_sqlalchemy_url(self) -> str:
        if self.is_sqlite:
            return f"sqlite:///{self.database}"
        driver = {
            "postgres": "postgresql+psycopg2",
            "mysql":    "mysql+pymysql",
            "mssql":    "mssql+pyodbc",
        }[self.dialect]
        port = self.port or DEFAULT_PORTS[self.dialect]
        creds = ""
        if self.user:
            creds = quote_plus(self.user)
            if self.password:
                creds += ":" + quote_plus(self.password)
            creds += "@"
        url = f"{driver}://{creds}{self.host or 'localhost'}:{port}/{self.database}"
        if self.dialect == "mssql":
            url += "?driver=ODBC+Driver+18+for+SQL+Server&TrustServerCertificate=yes"
        return url

    def public(self) -> dict:
        """Config without the password, for API responses."""
        return self.model_dump(exclude={"password"})


class DatabaseEntry(BaseModel):
    name: str
    config: DatabaseConfig


class DatabaseStatus(BaseModel):
    name: str
    dialect: str
    connected: bool
    models: int
    associations: int


class FailedDatabase(BaseModel):
    name: str
    dialect: str
    error: Optional[str] = None


class DatabaseListResponse(BaseModel):
    databases: list[DatabaseStatus]
    failed: list[FailedDatabase]
