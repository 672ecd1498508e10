"""
Binlog Player Entities

Pydantic models exchanged with a binlog player client. Positions are opaque
strings produced by the source; this package never parses them.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class Tablet(BaseModel):
    """Address of the tablet to stream from."""
    alias: str
    hostname: str
    port: int = Field(..., gt=0, lt=65536)
    keyspace: str = ""
    shard: str = ""

    @property
    def address(self) -> str:
        return f"{self.hostname}:{self.port}"


class Charset(BaseModel):
    """Character set ids of the client, connection and server."""
    client: int = 0
    conn: int = 0
    server: int = 0


class KeyRange(BaseModel):
    """Half-open range of keyspace ids; empty bounds are unbounded."""
    start: bytes = b""
    end: bytes = b""


class BinlogStatement(BaseModel):
    category: str
    sql: bytes
    charset: Optional[Charset] = None


class BinlogTransaction(BaseModel):
    """One transaction from the binlog, with the position just after it."""
    statements: List[BinlogStatement] = Field(default_factory=list)
    position: str = ""
    timestamp: int = 0
