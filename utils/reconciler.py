"""
Registration reconciliation.

A session moves NO_IDENTITY -> UNKNOWN -> CREATE | EDIT -> DONE. In CREATE a
submission inserts a full record; in EDIT it is diffed against the stored
baseline and only the changed columns are written. An empty diff is a
no-op that keeps the session in EDIT.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from core.config import logger
from core.errors import BackendUnavailableError, InvalidStateError, NoChangesError, ValidationError
from utils.datastore import AffiliateStore
from utils.form_validation import (
    REGISTRATION_FIELDS,
    canonical_value,
    columns_to_form,
    form_to_columns,
    validate_registration_form,
)
from utils.notifications import NotificationSink, LoggingNotificationSink, SUCCESS, ERROR, INFO
from utils.storage import ObjectStorage
from utils.uploads import (
    UPLOAD_CATEGORIES,
    SelectedFile,
    UploadedFile,
    check_category,
    files_from_urls,
    remove_uploaded_file,
    upload_batch,
    urls_of,
)

SCALAR_COLUMNS = tuple(spec.column for spec in REGISTRATION_FIELDS)
FILE_COLUMNS = tuple(col for col, _, _ in UPLOAD_CATEGORIES.values())

# Form keys the client uses for the four file collections
FILE_FORM_KEYS = {
    "videos_depoimento": "videosDepoimento",
    "imagens_produto": "imagensProduto",
    "imagens_prova_social": "imagensProvaSocial",
    "documentos_complementares": "documentosComplementares",
}


class ReconcilerState(str, Enum):
    NO_IDENTITY = "no_identity"
    UNKNOWN = "unknown"
    CREATE = "create"
    EDIT = "edit"
    DONE = "done"


@dataclass
class SubmitResult:
    mode: str
    registration_id: str
    changed_fields: List[str] = field(default_factory=list)
    record: Dict[str, Any] = field(default_factory=dict)

    @property
    def changed_count(self) -> int:
        return len(self.changed_fields)


def _required(column: str) -> bool:
    for spec in REGISTRATION_FIELDS:
        if spec.column == column:
            return spec.required
    return True


def canonical_record(record: Mapping[str, Any]) -> Dict[str, Any]:
    """Canonical form used on both sides of a diff."""
    out: Dict[str, Any] = {col: canonical_value(record.get(col), _required(col)) for col in SCALAR_COLUMNS}
    for col in FILE_COLUMNS:
        out[col] = sorted(record.get(col) or [])
    return out


def compute_diff(baseline: Mapping[str, Any], submitted: Mapping[str, Any]) -> Dict[str, Any]:
    """Columns of ``submitted`` whose canonical value differs from ``baseline``.

    File collections compare as sets of URLs (sorted copies), so a reorder
    alone is not a change; a changed collection is written in submitted order.
    """
    old = canonical_record(baseline)
    new = canonical_record(submitted)
    changes: Dict[str, Any] = {}
    for col in SCALAR_COLUMNS:
        if new[col] != old[col]:
            changes[col] = new[col]
    for col in FILE_COLUMNS:
        if new[col] != old[col]:
            changes[col] = list(submitted.get(col) or [])
    return changes


class RegistrationReconciler:
    def __init__(
        self,
        store: AffiliateStore,
        storage: Optional[ObjectStorage] = None,
        notifier: Optional[NotificationSink] = None,
    ):
        self.store = store
        self.storage = storage
        self.notifier = notifier or LoggingNotificationSink()
        self.state = ReconcilerState.NO_IDENTITY
        self.affiliate: Optional[dict] = None
        self.baseline: Optional[dict] = None
        self.result: Optional[SubmitResult] = None
        self.uploads: Dict[str, List[UploadedFile]] = {col: [] for col in FILE_COLUMNS}

    def _require(self, *states: ReconcilerState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise InvalidStateError(f"operation needs state {allowed}; current is {self.state.value}")

    # ---- identity / lookup ----

    def identify(self, profile: Mapping[str, Any]) -> None:
        self._require(ReconcilerState.NO_IDENTITY, ReconcilerState.UNKNOWN)
        if not profile or not profile.get("id"):
            raise InvalidStateError("profile without id")
        self.affiliate = dict(profile)
        self.state = ReconcilerState.UNKNOWN

    def load(self) -> Optional[dict]:
        """Look up the affiliate's registration; returns the baseline if any."""
        self._require(ReconcilerState.UNKNOWN)
        try:
            reg = self.store.find_registration_by_affiliate(self.affiliate["id"])
        except BackendUnavailableError:
            self.notifier.notify(ERROR, "Erro ao carregar cadastro", "Não foi possível verificar seu cadastro. Tente novamente.")
            raise
        if reg is None:
            self.baseline = None
            self.state = ReconcilerState.CREATE
            logger.info(f"[reconciler.load] affiliate={self.affiliate['id']} mode=create")
            return None

        self.baseline = reg.to_dict()
        for col in FILE_COLUMNS:
            self.uploads[col] = files_from_urls(self.baseline.get(col) or [])
        self.state = ReconcilerState.EDIT
        logger.info(f"[reconciler.load] affiliate={self.affiliate['id']} mode=edit id={reg.id}")
        return self.baseline

    def prefilled_form(self) -> Dict[str, Any]:
        form: Dict[str, Any] = columns_to_form(REGISTRATION_FIELDS, self.baseline or {})
        for col, key in FILE_FORM_KEYS.items():
            form[key] = urls_of(self.uploads[col])
        return form

    # ---- uploads ----

    def file_urls(self) -> Dict[str, List[str]]:
        return {col: urls_of(files) for col, files in self.uploads.items()}

    def restore_file_urls(self, form: Mapping[str, Any]) -> None:
        """Replace accumulated collections with URL lists a client sends back.

        Collections absent from ``form`` keep what load() pre-populated. A
        present collection must be a list of non-empty strings; if any is
        malformed nothing is replaced.
        """
        self._require(ReconcilerState.CREATE, ReconcilerState.EDIT)
        restored: Dict[str, List[str]] = {}
        errors: Dict[str, str] = {}
        for col, key in FILE_FORM_KEYS.items():
            value = form.get(key)
            if value is None:
                continue
            if not isinstance(value, list) or not all(isinstance(u, str) and u.strip() for u in value):
                errors[key] = "Lista de arquivos inválida"
                continue
            restored[col] = [u.strip() for u in value]
        if errors:
            raise ValidationError(errors)
        for col, urls in restored.items():
            self.uploads[col] = files_from_urls(urls)

    async def upload(self, category: str, files: Sequence[SelectedFile], owner_name: str) -> List[str]:
        self._require(ReconcilerState.CREATE, ReconcilerState.EDIT)
        if self.storage is None:
            raise InvalidStateError("no object storage configured")
        col = UPLOAD_CATEGORIES[check_category(category)][0]
        self.uploads[col] = await upload_batch(
            self.storage, owner_name, category, files, previous=self.uploads[col], notifier=self.notifier
        )
        return urls_of(self.uploads[col])

    def remove_file(self, category: str, index: int) -> List[str]:
        self._require(ReconcilerState.CREATE, ReconcilerState.EDIT)
        col = UPLOAD_CATEGORIES[check_category(category)][0]
        self.uploads[col] = remove_uploaded_file(self.uploads[col], index)
        return urls_of(self.uploads[col])

    # ---- submit ----

    def submit(self, form: Mapping[str, Any]) -> SubmitResult:
        self._require(ReconcilerState.CREATE, ReconcilerState.EDIT)
        validation = validate_registration_form(form)
        if not validation.valid:
            raise ValidationError(validation.errors)

        record = form_to_columns(REGISTRATION_FIELDS, validation.cleaned)
        record.update(self.file_urls())

        if self.state == ReconcilerState.CREATE:
            return self._create(record)
        return self._edit(record)

    def _create(self, record: Dict[str, Any]) -> SubmitResult:
        values = dict(record, afiliado_id=self.affiliate["id"])
        try:
            reg = self.store.insert_registration(values)
        except BackendUnavailableError:
            self.notifier.notify(ERROR, "Erro no cadastro", "Ocorreu um erro ao salvar seus dados. Tente novamente.")
            raise

        try:
            self.store.increment_total_cadastros(self.affiliate["id"])
        except BackendUnavailableError as ex:
            logger.warning(f"[reconciler.create] counter bump failed affiliate={self.affiliate['id']}: {ex.message}")

        logger.info(f"[reconciler.create] affiliate={self.affiliate['id']} id={reg.id}")
        self.notifier.notify(SUCCESS, "Cadastro realizado com sucesso!", "Seu agente afiliado foi cadastrado na nossa plataforma.")
        self.result = SubmitResult(mode="create", registration_id=reg.id, record=reg.to_dict())
        self.state = ReconcilerState.DONE
        return self.result

    def _edit(self, record: Dict[str, Any]) -> SubmitResult:
        changes = compute_diff(self.baseline, record)
        if not changes:
            self.notifier.notify(INFO, "Nenhuma alteração detectada", "Seu cadastro já está atualizado.")
            raise NoChangesError("no changes detected", registration_id=self.baseline["id"])

        changed = list(changes)
        changes["updated_at"] = datetime.now(timezone.utc)
        try:
            reg = self.store.update_registration(self.baseline["id"], changes)
        except BackendUnavailableError:
            self.notifier.notify(ERROR, "Erro ao atualizar", "Ocorreu um erro ao salvar suas alterações. Tente novamente.")
            raise

        logger.info(f"[reconciler.edit] id={reg.id} changed={','.join(changed)}")
        self.notifier.notify(SUCCESS, "Cadastro atualizado!", f"{len(changed)} campo(s) alterado(s).")
        self.result = SubmitResult(mode="edit", registration_id=reg.id, changed_fields=changed, record=reg.to_dict())
        self.state = ReconcilerState.DONE
        return self.result

    def start_new(self) -> None:
        """Leave DONE for a fresh lookup; uploaded blobs are kept."""
        self._require(ReconcilerState.DONE)
        self.baseline = None
        self.result = None
        self.uploads = {col: [] for col in FILE_COLUMNS}
        self.state = ReconcilerState.UNKNOWN
