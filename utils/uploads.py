"""
File upload batches for the registration form.

Each batch uploads every selected file concurrently under
``{slug(owner)}/{category}/{millis}_{rand}.{ext}`` and appends the results
to the files already accumulated for that category. A batch is
all-or-nothing from the caller's point of view: the first failing upload
is raised and nothing is appended. Blobs stored before the failure stay in
the bucket.
"""
import asyncio
import os
import re
import secrets
import string
import time
from dataclasses import dataclass, asdict
from typing import Iterable, List, Optional, Sequence
from urllib.parse import unquote, urlparse

from core.config import logger
from core.errors import BackendUnavailableError, MissingIdentifyingNameError, ValidationError
from utils.notifications import NotificationSink, SUCCESS, ERROR, WARNING
from utils.storage import ObjectStorage, guess_content_type

# category -> (registration column, accept hint, label)
UPLOAD_CATEGORIES = {
    "videos": ("videos_depoimento", "video/*", "Vídeos de Depoimento e Prova Social"),
    "imagens-produto": ("imagens_produto", "image/*", "Imagens do Produto"),
    "imagens-prova": ("imagens_prova_social", "image/*", "Imagens de Prova Social"),
    "documentos": ("documentos_complementares", ".pdf,.doc,.docx", "Documentos Complementares"),
}

CATEGORY_BY_COLUMN = {col: cat for cat, (col, _, _) in UPLOAD_CATEGORIES.items()}

_BASE36 = string.ascii_lowercase + string.digits
_EXT_RE = re.compile(r"[A-Za-z0-9]{1,16}")


@dataclass(frozen=True)
class SelectedFile:
    name: str
    data: bytes
    content_type: Optional[str] = None


@dataclass(frozen=True)
class UploadedFile:
    name: str
    url: str

    def to_dict(self) -> dict:
        return asdict(self)


def slugify_owner(owner_name: str) -> str:
    return re.sub(r"\s+", "-", (owner_name or "").strip().lower())


def check_owner_slug(owner_name: str) -> str:
    """Slug used as the first key segment; it must stay a single segment."""
    slug = slugify_owner(owner_name)
    if "/" in slug or "\\" in slug or ".." in slug or slug.startswith("."):
        raise ValidationError({"owner_name": "Nome do agente contém caracteres inválidos"})
    return slug


def file_extension(filename: str) -> str:
    ext = (filename or "").rsplit(".", 1)[-1] if "." in (filename or "") else ""
    return ext if _EXT_RE.fullmatch(ext) else "bin"


def unique_file_name(original_name: str) -> str:
    stamp = int(time.time() * 1000)
    rand = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{stamp}_{rand}.{file_extension(original_name)}"


def build_upload_path(owner_name: str, category: str, original_name: str) -> str:
    return f"{check_owner_slug(owner_name)}/{category}/{unique_file_name(original_name)}"


def check_category(category: str) -> str:
    if category not in UPLOAD_CATEGORIES:
        raise ValidationError({"categoria": f"Categoria desconhecida: {category}"})
    return category


def urls_of(files: Iterable[UploadedFile]) -> List[str]:
    return [f.url for f in files]


def files_from_urls(urls: Iterable[str]) -> List[UploadedFile]:
    """Rebuild accumulator entries from stored URLs; the name is the URL basename."""
    out = []
    for url in urls or []:
        name = unquote(os.path.basename(urlparse(url).path)) or url
        out.append(UploadedFile(name=name, url=url))
    return out


def remove_uploaded_file(files: Sequence[UploadedFile], index: int) -> List[UploadedFile]:
    """Drop one entry locally. The remote blob is kept."""
    return [f for i, f in enumerate(files) if i != index]


def _upload_one(storage: ObjectStorage, owner_name: str, category: str, selected: SelectedFile) -> UploadedFile:
    key = build_upload_path(owner_name, category, selected.name)
    content_type = selected.content_type or guess_content_type(selected.name)
    try:
        stored = storage.put(key, selected.data, content_type)
        url = storage.public_url(stored)
    except BackendUnavailableError:
        raise
    except Exception as ex:
        raise BackendUnavailableError(f"upload failed for {selected.name}", cause=ex) from ex
    return UploadedFile(name=selected.name, url=url)


async def upload_batch(
    storage: ObjectStorage,
    owner_name: str,
    category: str,
    files: Sequence[SelectedFile],
    previous: Sequence[UploadedFile] = (),
    notifier: Optional[NotificationSink] = None,
) -> List[UploadedFile]:
    """Upload ``files`` concurrently and return ``previous`` + the new entries."""
    check_category(category)
    if not files:
        return list(previous)

    if not (owner_name or "").strip():
        if notifier:
            notifier.notify(
                WARNING,
                "Nome necessário",
                "Por favor, preencha o nome do agente antes de fazer upload de arquivos.",
            )
        raise MissingIdentifyingNameError("owner name is required before uploading")

    try:
        owner_slug = check_owner_slug(owner_name)
    except ValidationError:
        if notifier:
            notifier.notify(WARNING, "Nome inválido", "O nome do agente não pode conter barras ou \"..\".")
        raise

    logger.info(f"[uploads.batch] owner={owner_slug} category={category} files={len(files)}")
    tasks = [asyncio.to_thread(_upload_one, storage, owner_name, category, f) for f in files]
    try:
        results = await asyncio.gather(*tasks)
    except BackendUnavailableError as ex:
        logger.warning(f"[uploads.batch] failed category={category}: {ex.message}")
        if notifier:
            notifier.notify(ERROR, "Erro no upload", "Ocorreu um erro ao enviar os arquivos. Tente novamente.")
        raise

    if notifier:
        notifier.notify(SUCCESS, "Upload concluído!", f"{len(files)} arquivo(s) enviado(s) com sucesso.")
    return list(previous) + list(results)
