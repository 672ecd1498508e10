"""
ShardOps - Operations Toolkit for Sharded Databases

Tooling for the operational side of a sharded, replicated database:
pluggable backup storage with atomic backup sessions, a sequential
schema change pipeline that applies DDL to every shard of a keyspace,
and the client registry for streaming binlogs from tablets.

Backends and protocols are chosen by name from configuration, so backup and
schema migration workflows run unchanged against any registered backend.
"""

__version__ = "0.1.0"
__author__ = "RhythmX"
