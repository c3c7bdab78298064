"""
Ejecución acotada en tiempo y aislada de fallas.

Los repositorios son sincrónicos (cliente de Supabase); los componentes los
corren en threads para poder lanzar sub-queries independientes en paralelo.
"""

import asyncio
from typing import Any, Callable, Optional, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


async def best_effort(
    label: str,
    func: Callable[..., T],
    *args: Any,
    timeout: float,
    **kwargs: Any,
) -> Optional[T]:
    """
    Corre ``func`` en un thread con timeout.

    Cualquier excepción o timeout se loguea y se devuelve ``None``: para el
    caller "ausente" y "error" son la misma señal de degradación.
    """
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(func, *args, **kwargs),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("Sub-query excedió el timeout", query=label, timeout=timeout)
        return None
    except Exception as e:
        logger.warning("Sub-query falló", query=label, error=str(e))
        return None


async def run_blocking(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Corre ``func`` en un thread propagando errores (queries no opcionales)."""
    return await asyncio.to_thread(func, *args, **kwargs)
