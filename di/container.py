from __future__ import annotations

import structlog
from dependency_injector import containers, providers

from core.settings import SETTINGS
from infra.resources import (
    CompletionProviderResource,
    DatabaseResource,
    IdentityResource,
)


logger = structlog.get_logger("fixie")


class InfrastructureContainer(containers.DeclarativeContainer):
    config = providers.Configuration()
    settings = providers.Object(SETTINGS)
    logger = providers.Object(logger)

    # Database
    database = providers.Resource(
        DatabaseResource,
        database_url=str(SETTINGS.DATABASE.DATABASE_URL),
    )

    # Identity service
    identity = providers.Resource(
        IdentityResource,
        base_url=SETTINGS.IDENTITY.IDENTITY_BASE_URL,
        api_key=SETTINGS.IDENTITY.IDENTITY_API_KEY.get_secret_value(),
        project_id=SETTINGS.IDENTITY.IDENTITY_PROJECT_ID,
        admin_token=SETTINGS.IDENTITY.IDENTITY_ADMIN_TOKEN.get_secret_value(),
        timeout=SETTINGS.IDENTITY.IDENTITY_TIMEOUT_SECONDS,
    )

    # Completion provider (OpenAI)
    completion_provider = providers.Resource(
        CompletionProviderResource,
        api_key=SETTINGS.OPENAI.API_KEY.get_secret_value(),
        base_url=SETTINGS.OPENAI.BASE_URL,
    )

    # Per-process turn serialization
    conversation_locks = providers.Singleton(
        "api.features.chat.locks.ConversationLockRegistry",
    )


class ServiceContainer(containers.DeclarativeContainer):
    """Application services - depends on infrastructure."""

    infrastructure = providers.DependenciesContainer()

    token_verifier = providers.Factory(
        "api.shared.auth.TokenVerifier",
        identity=infrastructure.identity,
    )

    context_loader = providers.Factory(
        "api.features.chat.context.ContextLoader",
        limit=SETTINGS.CHAT.CONTEXT_WINDOW,
    )

    completion_invoker = providers.Factory(
        "api.features.chat.completion.CompletionInvoker",
        provider=infrastructure.completion_provider,
        model=SETTINGS.OPENAI.MODEL,
        system_prompt=SETTINGS.CHAT.SYSTEM_PROMPT,
        max_tokens=SETTINGS.OPENAI.MAX_TOKENS,
        temperature=SETTINGS.OPENAI.TEMPERATURE,
        timeout_seconds=SETTINGS.OPENAI.TIMEOUT_SECONDS,
        max_retries=SETTINGS.OPENAI.MAX_RETRIES,
        backoff_initial_seconds=SETTINGS.OPENAI.BACKOFF_INITIAL_SECONDS,
        backoff_max_seconds=SETTINGS.OPENAI.BACKOFF_MAX_SECONDS,
        title_max_tokens=SETTINGS.CHAT.TITLE_MAX_TOKENS,
        title_temperature=SETTINGS.CHAT.TITLE_TEMPERATURE,
    )

    turn_persister = providers.Factory(
        "api.features.chat.persistence.TurnPersister",
    )

    title_refresher = providers.Factory(
        "api.features.chat.titles.TitleRefresher",
        invoker=completion_invoker,
        every=SETTINGS.CHAT.TITLE_REFRESH_EVERY,
    )


class ControllerContainer(containers.DeclarativeContainer):
    """Controller-specific dependencies."""

    services = providers.DependenciesContainer()
    infrastructure = providers.DependenciesContainer()

    chat_controller = providers.Factory(
        "api.features.chat.controller.ChatController",
        token_verifier=services.token_verifier,
        context_loader=services.context_loader,
        completion_invoker=services.completion_invoker,
        turn_persister=services.turn_persister,
        conversation_locks=infrastructure.conversation_locks,
        title_refresher=providers.Callable(
            lambda enabled, refresher: refresher if enabled else None,
            SETTINGS.CHAT.TITLE_REFRESH_ENABLED,
            services.title_refresher,
        ),
        title_min_seconds=SETTINGS.CHAT.TITLE_MIN_SECONDS,
    )

    conversation_controller = providers.Factory(
        "api.features.conversation.controller.ConversationController",
        conversation_locks=infrastructure.conversation_locks,
    )

    tools_controller = providers.Factory(
        "api.features.tools.controller.ToolsController",
        token_verifier=services.token_verifier,
        conversation_locks=infrastructure.conversation_locks,
    )


class ApplicationContainer(containers.DeclarativeContainer):
    """Main application container composing all sub-containers."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "api.main",
            "api.shared.db",
            "api.shared.auth",
            "api.features.chat.router",
            "api.features.conversation.router",
            "api.features.tools.router",
        ]
    )

    infrastructure = providers.Container(InfrastructureContainer)
    services = providers.Container(ServiceContainer, infrastructure=infrastructure)
    controllers = providers.Container(
        ControllerContainer, services=services, infrastructure=infrastructure
    )
