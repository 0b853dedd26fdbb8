# src/api/app/services/address_service.py
"""
Serviço de Endereços
====================
Cria endereços de entrega no Sanity e mantém, em regime best-effort, um único
endereço padrão por cliente (identificado pelo email).

Fluxo de uma submissão:
    Validating → Creating → [default pedido] Resolving → Demoting (paralelo) → Done
    Validating → Rejected quando o email está ausente

O Sanity não tem transação entre documentos. Depois que o endereço novo foi
criado, nenhuma falha de resolução ou demoção transforma a submissão em erro:
a falha é registrada em log e a próxima submissão com default=true converge o
estado. Duas submissões simultâneas podem deixar dois padrões por um tempo.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from src.api.schemas.address import AddressSubmission
from src.core.monitoring.metrics import metrics
from src.core.sanity import SanityClient, SanityError

logger = logging.getLogger(__name__)

ADDRESS_TYPE = "address"
PAYLOAD_FIELDS = ("name", "email", "address", "city", "state", "zip")

DEFAULT_CANDIDATES_QUERY = (
    '*[_type == "address" && email == $email && _id != $id && default == true]{ _id }'
)
ADDRESSES_BY_EMAIL_QUERY = (
    '*[_type == "address" && email == $email] | order(createdAt desc)'
)


# ═══════════════════════════════════════════════════════════
# EXCEÇÕES
# ═══════════════════════════════════════════════════════════

class AddressError(Exception):
    """Exceção base do fluxo de endereços"""
    status_code = 500
    public_message = "Server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)


class AddressValidationError(AddressError):
    """Identidade (email) ausente; nada é gravado"""
    status_code = 400
    public_message = "Email required"


class AddressCreationError(AddressError):
    """O Sanity recusou ou falhou a criação do documento"""


class DefaultResolutionError(AddressError):
    """Falha na consulta dos outros endereços padrão"""


class DefaultDemotionError(AddressError):
    """Falha ao remover o padrão de um endereço específico"""

    def __init__(self, address_id: str, message: Optional[str] = None):
        super().__init__(message)
        self.address_id = address_id


class AddressNotFoundError(AddressError):
    status_code = 404
    public_message = "Address not found"


class AddressStoreError(AddressError):
    """Sanity indisponível numa leitura"""
    status_code = 502
    public_message = "Store unavailable"


# ═══════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════

def is_truthy(value: Any) -> bool:
    """Coerção para bool com a semântica de truthiness do JSON/JS"""
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # NaN != NaN
        return value != 0 and value == value
    if isinstance(value, str):
        return value != ""
    return True


def to_iso_timestamp(moment: datetime) -> str:
    """UTC, precisão de milissegundos, sufixo Z (ex: 2024-05-01T12:00:00.000Z)"""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    utc = moment.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DemotionReport:
    demoted: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)


@dataclass
class SubmissionResult:
    address: Dict[str, Any]
    candidate_ids: List[str] = field(default_factory=list)
    # Preenchido quando as demoções rodam numa task própria do service
    demotions: Optional["asyncio.Task[DemotionReport]"] = None


# schedule(func, *args): ex. BackgroundTasks.add_task
Scheduler = Callable[..., Any]


class AddressService:
    """Service para criar e consultar endereços de clientes"""

    def __init__(self, sanity: SanityClient, clock: Optional[Callable[[], datetime]] = None):
        self.sanity = sanity
        self.clock = clock or _utc_now
        self._pending: set = set()

    # ========== SUBMISSÃO ==========

    async def submit(
        self,
        submission: Union[AddressSubmission, Dict[str, Any]],
        schedule: Optional[Scheduler] = None,
    ) -> SubmissionResult:
        """
        Cria o endereço e, se pedido, dispara a remoção do padrão dos demais.

        Args:
            submission: Dados do endereço
            schedule: Agendador das demoções. Sem agendador, as demoções rodam
                numa task acompanhada por `drain()`.

        Returns:
            SubmissionResult com o documento criado

        Raises:
            AddressValidationError: email ausente
            AddressCreationError: falha ao criar o documento
        """
        if isinstance(submission, dict):
            submission = AddressSubmission.model_validate(submission)

        created = await self.create_address(submission)
        result = SubmissionResult(address=created)

        if not is_truthy(submission.default):
            return result

        email = created.get("email", submission.email)
        try:
            candidate_ids = await self.resolve_default_candidates(email, created["_id"])
        except DefaultResolutionError as e:
            metrics.track_resolution_failure()
            logger.error(
                f"❌ Não foi possível buscar outros endereços padrão de {email} "
                f"(novo: {created['_id']}): {e}"
            )
            return result

        result.candidate_ids = candidate_ids
        if not candidate_ids:
            return result

        if schedule is None:
            result.demotions = self.dispatch_demotions(candidate_ids, email)
        else:
            schedule(self.demote_defaults, candidate_ids, email)

        return result

    # ========== ESCRITA ==========

    async def create_address(self, submission: AddressSubmission) -> Dict[str, Any]:
        """Valida o email e grava o endereço como um novo documento"""
        provided = submission.model_dump(exclude_unset=True)

        email = provided.get("email")
        if not is_truthy(email):
            metrics.track_address_rejected()
            logger.warning("⚠️ Endereço rejeitado: email ausente")
            raise AddressValidationError()

        document: Dict[str, Any] = {"_type": ADDRESS_TYPE}
        for key in PAYLOAD_FIELDS:
            if key in provided:
                document[key] = provided[key]
        document["default"] = is_truthy(provided.get("default"))
        document["createdAt"] = to_iso_timestamp(self.clock())

        try:
            stored = await self.sanity.create(document)
        except SanityError as e:
            metrics.track_creation_failure()
            logger.error(f"❌ Erro ao criar endereço para {email}: {e}")
            raise AddressCreationError(str(e)) from e

        created = {**document, **stored}
        metrics.track_address_created()
        logger.info(f"✅ Endereço {created.get('_id')} criado para {email} (default={document['default']})")
        return created

    # ========== RESOLUÇÃO ==========

    async def resolve_default_candidates(self, email: Any, new_id: str) -> List[str]:
        """Ids dos outros endereços padrão do mesmo email (nunca inclui new_id)"""
        try:
            rows = await self.sanity.fetch(
                DEFAULT_CANDIDATES_QUERY,
                {"email": email, "id": new_id},
            )
        except SanityError as e:
            raise DefaultResolutionError(str(e)) from e
        except Exception as e:
            # O endereço novo já existe: qualquer falha aqui vira erro de resolução
            raise DefaultResolutionError(f"{type(e).__name__}: {e}") from e

        candidate_ids: List[str] = []
        for row in rows or []:
            candidate_id = row.get("_id") if isinstance(row, dict) else None
            if not candidate_id:
                continue
            if candidate_id == new_id:
                # Índice defasado devolveu o próprio documento novo
                metrics.track_self_inclusion()
                logger.warning(f"⚠️ Consulta retornou o próprio endereço novo {new_id}; ignorado")
                continue
            if candidate_id not in candidate_ids:
                candidate_ids.append(candidate_id)

        return candidate_ids

    # ========== DEMOÇÃO ==========

    async def demote_defaults(self, candidate_ids: List[str], email: Any = None) -> DemotionReport:
        """
        Remove o padrão de cada candidato, todos em paralelo.

        Uma falha não interrompe as demais e nunca é propagada: fica no log,
        nas métricas e no DemotionReport.
        """
        outcomes = await asyncio.gather(
            *(self._demote_one(candidate_id) for candidate_id in candidate_ids),
            return_exceptions=True,
        )

        report = DemotionReport()
        for candidate_id, outcome in zip(candidate_ids, outcomes):
            if isinstance(outcome, BaseException):
                report.failed[candidate_id] = str(outcome)
                logger.error(
                    f"❌ Falha ao remover padrão do endereço {candidate_id} ({email}): {outcome}"
                )
            else:
                report.demoted.append(candidate_id)

        metrics.track_demotions(succeeded=len(report.demoted), failed=len(report.failed))
        logger.info(
            f"🔁 Demoção concluída para {email}: "
            f"{len(report.demoted)} ok, {len(report.failed)} falha(s)"
        )
        return report

    async def _demote_one(self, candidate_id: str) -> None:
        try:
            await (
                self.sanity.patch(candidate_id)
                .set({"default": False})
                .commit(auto_generate_array_keys=True)
            )
        except SanityError as e:
            raise DefaultDemotionError(candidate_id, str(e)) from e

    def dispatch_demotions(self, candidate_ids: List[str], email: Any = None) -> "asyncio.Task[DemotionReport]":
        """Dispara as demoções sem bloquear quem chamou"""
        task = asyncio.create_task(self.demote_defaults(candidate_ids, email))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending_demotions(self) -> int:
        return len(self._pending)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Aguarda as demoções em andamento (shutdown e testes)"""
        if not self._pending:
            return

        _, not_done = await asyncio.wait(list(self._pending), timeout=timeout)
        if not_done:
            logger.warning(f"⚠️ {len(not_done)} lote(s) de demoção ainda em andamento após {timeout}s")

    # ========== LEITURA ==========

    async def list_addresses(self, email: Optional[str]) -> List[Dict[str, Any]]:
        """Endereços do email, mais recentes primeiro"""
        if not email:
            raise AddressValidationError()

        try:
            rows = await self.sanity.fetch(ADDRESSES_BY_EMAIL_QUERY, {"email": email})
        except SanityError as e:
            logger.error(f"❌ Erro ao listar endereços de {email}: {e}")
            raise AddressStoreError(str(e)) from e

        return list(rows or [])

    async def get_address(self, address_id: str) -> Dict[str, Any]:
        try:
            document = await self.sanity.get_document(address_id)
        except SanityError as e:
            if e.status_code == 404:
                raise AddressNotFoundError() from e
            logger.error(f"❌ Erro ao buscar endereço {address_id}: {e}")
            raise AddressStoreError(str(e)) from e

        if not document or document.get("_type") != ADDRESS_TYPE:
            raise AddressNotFoundError()

        return document
