"""
Exec Module - Black Box Interface

Purpose: Represent exec requests coming from the Kubernetes API
Interface: Command, CommandOptions, parse_exec_query()
Hidden: Query string splitting, percent decoding

Can be replaced with a full remotecommand (SPDY/stream) negotiation layer.
"""

from .command import Command, CommandOptions, parse_exec_query

__all__ = ["Command", "CommandOptions", "parse_exec_query"]
