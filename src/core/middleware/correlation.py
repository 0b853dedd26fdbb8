import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware

# Propaga o id para tasks criadas durante a requisição (ex: demoções)
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")


def get_correlation_id() -> str:
	return correlation_id_var.get()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
	async def dispatch(self, request, call_next):
		cid = request.headers.get('x-correlation-id') or f"sa-{uuid.uuid4()}"
		request.state.correlation_id = cid
		token = correlation_id_var.set(cid)
		try:
			response = await call_next(request)
		finally:
			correlation_id_var.reset(token)
		response.headers['x-correlation-id'] = cid
		return response
