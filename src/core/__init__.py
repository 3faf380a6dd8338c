"""Core domain package for swarmchat.

Core contains the address cache contract, consensus rule, channel resolution
and session orchestration without any Bee node or terminal specific code,
keeping the logic portable and testable with in-memory fakes.
"""
