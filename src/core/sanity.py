"""
Cliente Sanity (Content Lake)
=============================
Acesso assíncrono à API HTTP do Sanity: create, fetch (GROQ), get_document
e patch().set().commit().

Nenhuma chamada é repetida automaticamente: quem chama decide o que fazer
com a falha.
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from src.core.config import Config, config as default_config

logger = logging.getLogger(__name__)


class SanityError(Exception):
    """Falha de comunicação ou resposta não-2xx do Sanity"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SanityPatch:
    """Builder de patch de documento único: patch(id).set({...}).commit()"""

    def __init__(self, client: "SanityClient", document_id: str):
        self.client = client
        self.document_id = document_id
        self._set: Dict[str, Any] = {}

    def set(self, fields: Dict[str, Any]) -> "SanityPatch":
        self._set.update(fields)
        return self

    def serialize(self) -> Dict[str, Any]:
        patch: Dict[str, Any] = {"id": self.document_id}
        if self._set:
            patch["set"] = dict(self._set)
        return patch

    async def commit(self, auto_generate_array_keys: bool = False) -> Dict[str, Any]:
        """Envia o patch e retorna o documento atualizado"""
        result = await self.client.mutate(
            [{"patch": self.serialize()}],
            auto_generate_array_keys=auto_generate_array_keys,
        )
        return _first_document(result, self.document_id)


class SanityClient:
    """
    Cliente HTTP assíncrono para o Content Lake.

    Atributos:
        project_id: Projeto do Sanity
        dataset: Dataset (ex: 'production')
        api_version: Versão da API no formato YYYY-MM-DD
        use_cdn: Usa apicdn.sanity.io para leituras
    """

    def __init__(
        self,
        project_id: str,
        dataset: str,
        token: Optional[str] = None,
        api_version: str = "2024-01-01",
        use_cdn: bool = False,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.project_id = project_id
        self.dataset = dataset
        self.api_version = api_version.lstrip("v")
        self.use_cdn = use_cdn

        headers = {"user-agent": "storefront-address-api/1.0"}
        if token:
            headers["authorization"] = f"Bearer {token}"

        self._http = httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @classmethod
    def from_config(cls, cfg: Config = default_config, **kwargs) -> "SanityClient":
        """Monta o cliente a partir das configurações da aplicação"""
        return cls(
            project_id=cfg.SANITY_PROJECT_ID,
            dataset=cfg.SANITY_DATASET,
            token=cfg.SANITY_API_TOKEN,
            api_version=cfg.SANITY_API_VERSION,
            use_cdn=cfg.SANITY_USE_CDN,
            timeout=cfg.SANITY_TIMEOUT_SECONDS,
            **kwargs,
        )

    # ═══════════════════════════════════════════════════════════
    # URLs
    # ═══════════════════════════════════════════════════════════

    def _base_url(self, read: bool = False) -> str:
        host = "apicdn" if (read and self.use_cdn) else "api"
        return f"https://{self.project_id}.{host}.sanity.io/v{self.api_version}"

    def _data_url(self, endpoint: str, read: bool = False) -> str:
        return f"{self._base_url(read)}/data/{endpoint}/{self.dataset}"

    # ═══════════════════════════════════════════════════════════
    # TRANSPORTE
    # ═══════════════════════════════════════════════════════════

    async def _make_request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise SanityError(f"Timeout ao acessar o Sanity: {e}") from e
        except httpx.RequestError as e:
            raise SanityError(f"Erro de conexão com o Sanity: {e}") from e

        if response.status_code >= 400:
            try:
                body = response.json()
                error = body.get("error", {})
                detail = error.get("description") if isinstance(error, dict) else error
                detail = detail or body.get("message") or response.text
            except ValueError:
                detail = response.text
            raise SanityError(
                f"Sanity respondeu {response.status_code}: {detail}",
                status_code=response.status_code,
            )

        try:
            return response.json() if response.content else {}
        except ValueError as e:
            raise SanityError("Resposta inválida do Sanity", status_code=response.status_code) from e

    async def aclose(self) -> None:
        await self._http.aclose()

    # ═══════════════════════════════════════════════════════════
    # OPERAÇÕES
    # ═══════════════════════════════════════════════════════════

    async def mutate(self, mutations: list, auto_generate_array_keys: bool = False) -> Dict[str, Any]:
        """Envia uma transação de mutações e retorna o corpo da resposta"""
        params = {
            "returnIds": "true",
            "returnDocuments": "true",
            "visibility": "sync",
        }
        if auto_generate_array_keys:
            params["autoGenerateArrayKeys"] = "true"

        return await self._make_request(
            "POST",
            self._data_url("mutate"),
            params=params,
            json={"mutations": mutations},
        )

    async def create(self, document: Dict[str, Any]) -> Dict[str, Any]:
        """Cria um documento; o Sanity atribui o _id quando ausente"""
        result = await self.mutate([{"create": document}])
        return _first_document(result)

    async def fetch(self, query: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Executa uma consulta GROQ com parâmetros ($nome) e retorna o result"""
        query_params = {"query": query}
        for name, value in (params or {}).items():
            query_params[f"${name}"] = json.dumps(value)

        body = await self._make_request(
            "GET",
            self._data_url("query", read=True),
            params=query_params,
        )
        return body.get("result")

    async def get_document(self, document_id: str) -> Optional[Dict[str, Any]]:
        """Busca um documento pelo id; None quando não existe"""
        body = await self._make_request(
            "GET",
            f"{self._data_url('doc', read=True)}/{document_id}",
        )
        documents = body.get("documents") or []
        return documents[0] if documents else None

    def patch(self, document_id: str) -> SanityPatch:
        return SanityPatch(self, document_id)


def _first_document(result: Dict[str, Any], document_id: Optional[str] = None) -> Dict[str, Any]:
    """Extrai o documento retornado por uma mutação (returnDocuments=true)"""
    results = result.get("results") or []
    if not results:
        raise SanityError("Mutação sem resultados")

    first = results[0]
    document = first.get("document")
    if document is None:
        document = {"_id": first.get("id") or document_id}
    return document
