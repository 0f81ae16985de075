"""Rate limiting adapters.

Two interchangeable policies behind one interface: a per-process in-memory
counter, and a store-backed counter that derives state from persisted records
so it holds across instances.
"""
