"""Leave approval API module.

Submodules:
    - router: FastAPI router for /apply-leave, /process-approval and /requests/*
    - models: Pydantic request/response models
    - dependencies: Lazy construction of the engine and substrate
"""

from src.api.leave.router import router

__all__ = ["router"]
