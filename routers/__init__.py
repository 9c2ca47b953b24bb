from routers.safety import router as safety_router

__all__ = ["safety_router"]
