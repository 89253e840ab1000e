"""
Affiliate identity: create a profile or authenticate an existing one.

One resolver serves both login schemes; the scheme is picked once through
AuthStrategy and applied consistently (error granularity included).
"""
from enum import Enum
from typing import Optional

import bcrypt

from core.config import logger, AFFILIATE_AUTH_STRATEGY
from core.errors import (
    BackendUnavailableError,
    DuplicateIdentityError,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
)
from utils.datastore import AffiliateStore
from utils.form_validation import (
    LOGIN_CODE_FIELDS,
    LOGIN_PASSWORD_FIELDS,
    validate_form,
    validate_signup_form,
)
from utils.notifications import NotificationSink, LoggingNotificationSink, SUCCESS, ERROR


class AuthStrategy(str, Enum):
    CODE = "code"
    EMAIL_PASSWORD = "email+password"

    @classmethod
    def from_config(cls, value: Optional[str] = None) -> "AuthStrategy":
        raw = (value or AFFILIATE_AUTH_STRATEGY or "code").strip().lower()
        try:
            return cls(raw)
        except ValueError:
            logger.warning(f"Unknown AFFILIATE_AUTH_STRATEGY={raw!r}; falling back to code")
            return cls.CODE


def hash_password(raw: str) -> str:
    return bcrypt.hashpw(raw.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(raw: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(raw.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


class IdentityResolver:
    def __init__(
        self,
        store: AffiliateStore,
        notifier: Optional[NotificationSink] = None,
        strategy: Optional[AuthStrategy] = None,
    ):
        self.store = store
        self.notifier = notifier or LoggingNotificationSink()
        self.strategy = strategy or AuthStrategy.from_config()

    @property
    def uses_password(self) -> bool:
        return self.strategy == AuthStrategy.EMAIL_PASSWORD

    def create(self, email: str, nome_completo: str, telefone: str, senha: Optional[str] = None) -> dict:
        form = {"email": email, "nomeCompleto": nome_completo, "telefone": telefone, "senha": senha}
        result = validate_signup_form(form, require_password=self.uses_password)
        if not result.valid:
            raise ValidationError(result.errors)
        em = result.cleaned["email"].lower()

        try:
            existing = self.store.find_profile_by("email", em)
            if existing:
                hint = existing.email if self.uses_password else existing.codigo_afiliado
                logger.info(f"[identity.create] duplicate email={em} id={existing.id}")
                self.notifier.notify(
                    ERROR,
                    "Afiliado já existe!",
                    f"Use o código {existing.codigo_afiliado} para fazer login."
                    if not self.uses_password else f"Faça login com o email {existing.email}.",
                )
                raise DuplicateIdentityError(existing.id, existing.codigo_afiliado, hint)

            code = self.store.generate_unique_code()
            values = {
                "email": em,
                "nome_completo": result.cleaned["nomeCompleto"],
                "telefone": result.cleaned["telefone"],
                "codigo_afiliado": code,
            }
            if self.uses_password:
                values["senha"] = hash_password(result.cleaned["senha"])
            profile = self.store.insert_profile(values)
        except BackendUnavailableError:
            self.notifier.notify(ERROR, "Erro no cadastro", "Ocorreu um erro ao criar seu perfil. Tente novamente.")
            raise

        logger.info(f"[identity.create] created id={profile.id} code={profile.codigo_afiliado}")
        self.notifier.notify(
            SUCCESS,
            "Afiliado criado com sucesso!",
            f"Seu código é: {profile.codigo_afiliado}. Guarde-o para futuros acessos!",
        )
        return profile.to_dict()

    def authenticate(
        self,
        codigo_afiliado: Optional[str] = None,
        email: Optional[str] = None,
        senha: Optional[str] = None,
    ) -> dict:
        try:
            if self.uses_password:
                profile = self._by_password(email, senha)
            else:
                profile = self._by_code(codigo_afiliado)
        except BackendUnavailableError:
            self.notifier.notify(ERROR, "Erro no login", "Ocorreu um erro ao acessar seu perfil.")
            raise

        # Fire-and-forget: a failed bump never fails the login
        try:
            self.store.touch_last_access(profile.id)
        except BackendUnavailableError as ex:
            logger.warning(f"[identity.login] last-access update failed id={profile.id}: {ex.message}")

        self.notifier.notify(SUCCESS, "Login realizado!", f"Bem-vindo de volta, {profile.nome_completo}!")
        return profile.to_dict()

    def _by_code(self, codigo_afiliado: Optional[str]):
        result = validate_form(LOGIN_CODE_FIELDS, {"codigoAfiliado": codigo_afiliado})
        if not result.valid:
            raise ValidationError(result.errors)
        code = result.cleaned["codigoAfiliado"].upper()
        profile = self.store.find_profile_by("codigo_afiliado", code)
        if not profile:
            self.notifier.notify(
                ERROR,
                "Código não encontrado",
                "Verifique se o código está correto ou crie um novo perfil.",
            )
            raise NotFoundError("affiliate code not found")
        return profile

    def _by_password(self, email: Optional[str], senha: Optional[str]):
        result = validate_form(LOGIN_PASSWORD_FIELDS, {"email": email, "senha": senha})
        if not result.valid:
            raise ValidationError(result.errors)
        profile = self.store.find_profile_by("email", result.cleaned["email"].lower())
        if not profile or not check_password(result.cleaned["senha"], profile.senha):
            self.notifier.notify(ERROR, "Credenciais inválidas", "Email ou senha incorretos.")
            raise InvalidCredentialsError("invalid email or password")
        return profile
