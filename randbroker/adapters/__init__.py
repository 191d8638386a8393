"""
Host-facing adapters: account validation, the serialized service wrapper and
the FastAPI/JSON-RPC mount. Import submodules directly; the FastAPI mount is
only needed by HTTP hosts.
"""
