"""End-to-end generation of business plans and monthly deliverables.

A generation job builds the client context once, loads the prompt template,
produces the document either section by section (checkpointing after each)
or in a single completion call, stores the parsed sections, persists the
document and completes the checkpoint. Any failure after the checkpoint
exists marks it FAILED so :meth:`GenerationOrchestrator.resume_job` can pick
up where the job stopped without paying again for finished sections.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence, Tuple, Union
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import GenerationSettings, settings
from app.core.exceptions import (
    AppError,
    CheckpointError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.database.models import BusinessPlan, Deliverable, DocumentStatus, DocumentType
from app.repositories.activity_repository import ActivityRepository
from app.repositories.checkpoint_repository import CheckpointRepository
from app.repositories.client_repository import ClientRepository
from app.repositories.document_repository import BusinessPlanRepository, DeliverableRepository
from app.repositories.prompt_cache_repository import PromptCacheRepository
from app.repositories.prompt_template_repository import PromptTemplateRepository
from app.repositories.section_repository import SectionRepository
from app.repositories.token_budget_repository import TokenBudgetRepository, TokenUsageRepository
from app.services.generation.cache_store import CacheStore, DatabaseCacheStore
from app.services.generation.checkpoint_manager import CheckpointData, CheckpointManager
from app.services.generation.completion_service import (
    CompletionClient,
    CompletionOptions,
    CompletionService,
)
from app.services.generation.context_builder import ClientContext, ContextBuilder, month_title
from app.services.generation.prompt_loader import (
    LoadedTemplate,
    PromptTemplateLoader,
    template_type_for,
)
from app.services.generation.sections import (
    BUSINESS_PLAN_SECTIONS,
    DELIVERABLE_SECTIONS,
    SectionDefinition,
    SectionStore,
    combine_sections,
    get_affected_sections,
    section_titles_for,
    sections_by_name,
    strip_leading_heading,
)
from app.services.notifications import (
    ActivityLogNotifier,
    EventType,
    GenerationEvent,
    NotificationSink,
)
from app.utils.logging import get_job_logger, get_logger

LOGGER = get_logger(__name__)

MODE_SECTIONED = "sectioned"
MODE_SINGLE_PASS = "single_pass"

Document = Union[BusinessPlan, Deliverable]


def catalogue_for(document_type: str) -> List[SectionDefinition]:
    if document_type == DocumentType.BUSINESS_PLAN.value:
        return BUSINESS_PLAN_SECTIONS
    return DELIVERABLE_SECTIONS


def document_label(document_type: str) -> str:
    return "business plan" if document_type == DocumentType.BUSINESS_PLAN.value else "deliverable"


def build_section_prompt(
    title: str, label: str, context: Dict[str, Any], brief: Optional[str] = None
) -> str:
    """Focused prompt asking the model for a single ``##`` section.

    ``brief`` is the rendered prompt template, so the active template shapes
    every section the same way it shapes a single-pass document.
    """
    brief_block = f"Document Brief:\n{brief.strip()}\n\n" if brief and brief.strip() else ""
    return (
        f'Generate the "{title}" section for a {label}.\n\n'
        f"{brief_block}"
        f"Client Information:\n{json.dumps(context, indent=2)}\n\n"
        "Requirements:\n"
        "- This should be a complete, detailed section\n"
        "- Use professional business language\n"
        f"- Focus specifically on {title}\n"
        f"- Output in markdown format starting with ## {title}\n\n"
        "Generate only this section, nothing else."
    )


def new_job_id(document_type: str) -> str:
    prefix = "bp" if document_type == DocumentType.BUSINESS_PLAN.value else "dl"
    return f"{prefix}-{uuid4()}"


def operation_label(prefix: str, name: str) -> str:
    return f"{prefix}_{name.upper().replace(' ', '_')}"


class DocumentLockRegistry:
    """One ``asyncio.Lock`` per ``(document_type, document_id)``.

    A lock is dropped once its last holder or waiter leaves, so the registry
    only holds documents that are being worked on.
    """

    def __init__(self) -> None:
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}
        self._users: Dict[Tuple[str, str], int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, document_type: str, document_id: UUID) -> AsyncIterator[None]:
        key = (document_type, str(document_id))
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


DOCUMENT_LOCKS = DocumentLockRegistry()


@dataclass
class GenerationJob:
    job_id: str
    document_type: str
    client_id: UUID
    user_id: str
    context: ClientContext
    template: LoadedTemplate
    mode: str
    month: Optional[int] = None
    generated: List[Dict[str, Any]] = field(default_factory=list)
    start_index: int = 0
    resumed: bool = False

    @property
    def catalogue(self) -> List[SectionDefinition]:
        return catalogue_for(self.document_type)


@dataclass
class GenerationOutcome:
    job_id: str
    document_id: UUID
    document_type: str
    client_id: UUID
    version: int
    section_count: int
    total_tokens: int
    resumed: bool = False
    month: Optional[int] = None


@dataclass
class RegenerationResult:
    document_id: UUID
    regenerated_sections: List[str]
    skipped_sections: List[str]
    total_sections: int


class GenerationOrchestrator:
    """Drives generation, section regeneration and resume of documents."""

    def __init__(
        self,
        context_builder: ContextBuilder,
        prompt_loader: PromptTemplateLoader,
        completion_service: CompletionService,
        section_store: SectionStore,
        checkpoint_manager: CheckpointManager,
        business_plans: BusinessPlanRepository,
        deliverables: DeliverableRepository,
        notifier: NotificationSink,
        generation_settings: Optional[GenerationSettings] = None,
        locks: Optional[DocumentLockRegistry] = None,
    ):
        self.context_builder = context_builder
        self.prompt_loader = prompt_loader
        self.completion_service = completion_service
        self.section_store = section_store
        self.checkpoint_manager = checkpoint_manager
        self.business_plans = business_plans
        self.deliverables = deliverables
        self.notifier = notifier
        self.settings = generation_settings or settings.generation
        self.locks = locks if locks is not None else DOCUMENT_LOCKS

    @property
    def default_mode(self) -> str:
        return MODE_SECTIONED if self.settings.sectioned_generation else MODE_SINGLE_PASS

    async def generate_business_plan(
        self, client_id: UUID, user_id: str, job_id: Optional[str] = None
    ) -> GenerationOutcome:
        """Generate the client's business plan.

        Raises:
            ConflictError: If the client already has a business plan
            NotFoundError: If the client or the template is missing
            GenerationError / CapacityError: From the completion service
        """
        document_type = DocumentType.BUSINESS_PLAN.value
        if await self.business_plans.get_by_client_id(client_id) is not None:
            raise ConflictError(f"Client {client_id} already has a business plan")

        context = await self.context_builder.build_context(client_id)
        template = await self.prompt_loader.load_template(template_type_for(document_type))

        job = GenerationJob(
            job_id=job_id or new_job_id(document_type),
            document_type=document_type,
            client_id=client_id,
            user_id=user_id,
            context=context,
            template=template,
            mode=self.default_mode,
        )
        return await self._run_job(job)

    async def generate_deliverable(
        self, client_id: UUID, month: int, user_id: str, job_id: Optional[str] = None
    ) -> GenerationOutcome:
        """Generate the deliverable for program ``month`` (1-8).

        Raises:
            ValidationError: If the month is out of range
            ConflictError: If the month was already generated
        """
        document_type = DocumentType.DELIVERABLE.value
        template_type = template_type_for(document_type, month)

        if await self.deliverables.get_by_client_and_month(client_id, month) is not None:
            raise ConflictError(f"Deliverable for month {month} already exists")

        context = await self.context_builder.build_deliverable_context(client_id, month)
        template = await self.prompt_loader.load_template(template_type)

        job = GenerationJob(
            job_id=job_id or new_job_id(document_type),
            document_type=document_type,
            client_id=client_id,
            user_id=user_id,
            context=context,
            template=template,
            mode=self.default_mode,
            month=month,
        )
        return await self._run_job(job)

    async def resume_job(self, job_id: str, user_id: str) -> GenerationOutcome:
        """Continue a FAILED or interrupted job from its checkpoint.

        Raises:
            NotFoundError: If there is no checkpoint for ``job_id``
            ValidationError: If the checkpoint cannot be resumed
        """
        checkpoint = await self.checkpoint_manager.get_checkpoint(job_id)
        if checkpoint is None:
            raise NotFoundError("Checkpoint", job_id)
        if not checkpoint.can_resume:
            raise ValidationError("This checkpoint cannot be resumed")

        document_type = checkpoint.job_type
        context = checkpoint.prompt_context
        month: Optional[int] = None
        if document_type == DocumentType.DELIVERABLE.value:
            month = int(context.get("current_month_number", 0))
            if await self.deliverables.get_by_client_and_month(checkpoint.client_id, month):
                raise ConflictError(f"Deliverable for month {month} already exists")
        elif document_type == DocumentType.BUSINESS_PLAN.value:
            if await self.business_plans.get_by_client_id(checkpoint.client_id):
                raise ConflictError(f"Client {checkpoint.client_id} already has a business plan")
        else:
            raise ValidationError(f"Unknown job type: {document_type}")

        template = await self.prompt_loader.load_template(template_type_for(document_type, month))
        metadata = checkpoint.metadata or {}

        job = GenerationJob(
            job_id=job_id,
            document_type=document_type,
            client_id=checkpoint.client_id,
            user_id=user_id,
            context=context,
            template=template,
            mode=metadata.get("mode", MODE_SECTIONED),
            month=month,
            generated=list(checkpoint.generated_content),
            start_index=checkpoint.current_section,
            resumed=True,
        )
        return await self._run_job(job)

    async def regenerate_sections(
        self,
        document_type: str,
        document_id: UUID,
        section_names: Sequence[str],
        user_id: str,
    ) -> RegenerationResult:
        """Regenerate the named sections in place and recombine the document.

        Names not present among the stored sections are skipped and reported
        in ``skipped_sections``.

        Raises:
            ValidationError: If no names are given or the document has no sections
            NotFoundError: If the document does not exist
        """
        if not section_names:
            raise ValidationError("At least one section must be selected")

        document = await self._get_document(document_type, document_id)
        month = getattr(document, "month", None)
        log = get_job_logger(LOGGER, None, document_id=str(document_id))

        async with self.locks.hold(document_type, document_id):
            sections = await self.section_store.get_sections(document_id, document_type)
            if not sections and document.content_markdown:
                await self.section_store.store_sections(
                    document_id, document_type, document.content_markdown, document.generated_by
                )
                sections = await self.section_store.get_sections(document_id, document_type)
            if not sections:
                raise ValidationError("No sections found to regenerate")

            if document_type == DocumentType.DELIVERABLE.value:
                context = await self.context_builder.build_deliverable_context(document.client_id, month)
            else:
                context = await self.context_builder.build_context(document.client_id)
            template = await self.prompt_loader.load_template(template_type_for(document_type, month))
            brief = self.prompt_loader.render_template(template, context)

            stored = sections_by_name(sections)
            regenerated: List[str] = []
            skipped: List[str] = []
            label = document_label(document_type)

            try:
                for name in section_names:
                    section = stored.get(name)
                    if section is None:
                        log.info(f"Skipping unknown section '{name}'")
                        skipped.append(name)
                        continue

                    result = await self.completion_service.generate(
                        build_section_prompt(name, label, context, brief),
                        CompletionOptions(
                            system_prompt=template.system_prompt,
                            use_cache=True,
                            cache_ttl_hours=self.settings.section_cache_ttl_hours,
                            operation=operation_label("REGENERATE_SECTION", name),
                            client_id=str(document.client_id),
                            user_id=user_id,
                            metadata={"document_id": str(document_id), "section_name": name},
                        ),
                    )
                    await self.section_store.update_section(
                        section, strip_leading_heading(result.text), user_id, result.total_tokens
                    )
                    regenerated.append(name)
            except Exception:
                # Sections finished before the failure are already stored.
                if regenerated:
                    await self._recombine_after_failure(document_type, document_id, log)
                raise

            document, updated = await self._recombine(document_type, document_id)

        await self.notifier.notify(
            GenerationEvent(
                type=(
                    EventType.BUSINESS_PLAN_UPDATED
                    if document_type == DocumentType.BUSINESS_PLAN.value
                    else EventType.DELIVERABLE_UPDATED
                ),
                client_id=document.client_id,
                user_id=user_id,
                description=f"Regenerated sections: {', '.join(regenerated)}",
                metadata={"document_id": str(document_id), "skipped": skipped},
            )
        )
        log.info(f"Regenerated {len(regenerated)} of {len(section_names)} requested sections")

        return RegenerationResult(
            document_id=document_id,
            regenerated_sections=regenerated,
            skipped_sections=skipped,
            total_sections=len(updated),
        )

    async def regenerate_affected_sections(
        self,
        document_type: str,
        document_id: UUID,
        changed_fields: Sequence[str],
        user_id: str,
    ) -> RegenerationResult:
        """Regenerate only the sections whose content depends on ``changed_fields``."""
        titles = section_titles_for(get_affected_sections(changed_fields), catalogue_for(document_type))
        if not titles:
            await self._get_document(document_type, document_id)
            sections = await self.section_store.get_sections(document_id, document_type)
            return RegenerationResult(document_id, [], [], len(sections))
        return await self.regenerate_sections(document_type, document_id, titles, user_id)

    async def _run_job(self, job: GenerationJob) -> GenerationOutcome:
        log = get_job_logger(LOGGER, job.job_id, client_id=str(job.client_id))
        log.info(
            f"{'Resuming' if job.resumed else 'Starting'} {document_label(job.document_type)} "
            f"generation ({job.mode}) at section {job.start_index}"
        )

        try:
            if job.mode == MODE_SECTIONED:
                markdown, tokens = await self._generate_sectioned(job)
            else:
                markdown, tokens = await self._generate_single_pass(job)
            document = await self._persist_document(job, markdown, tokens)
            await self.checkpoint_manager.complete_checkpoint(job.job_id)
        except Exception as e:
            await self._mark_failed(job, e)
            raise

        sections = await self.section_store.get_sections(document.id, job.document_type)
        await self._notify_generated(job, document)
        log.info(f"Generation completed: {len(sections)} sections, {tokens} tokens")

        return GenerationOutcome(
            job_id=job.job_id,
            document_id=document.id,
            document_type=job.document_type,
            client_id=job.client_id,
            version=document.version,
            section_count=len(sections),
            total_tokens=tokens,
            resumed=job.resumed,
            month=job.month,
        )

    async def _generate_sectioned(self, job: GenerationJob) -> Tuple[str, int]:
        catalogue = job.catalogue
        generated = list(job.generated)
        label = document_label(job.document_type)
        prefix = "RESUME" if job.resumed else "GENERATE"
        brief = self.prompt_loader.render_template(job.template, job.context)

        if job.start_index == 0 and not generated:
            await self._save_progress(job, generated, 0, len(catalogue))

        for index in range(job.start_index, len(catalogue)):
            definition = catalogue[index]
            result = await self.completion_service.generate(
                build_section_prompt(definition.title, label, job.context, brief),
                CompletionOptions(
                    system_prompt=job.template.system_prompt,
                    use_cache=True,
                    cache_ttl_hours=self.settings.business_plan_cache_ttl_hours,
                    operation=operation_label(f"{prefix}_{job.document_type}", definition.name),
                    client_id=str(job.client_id),
                    user_id=job.user_id,
                    metadata={"job_id": job.job_id, "section": definition.name, "resumed": job.resumed},
                ),
            )
            generated.append(
                {
                    "name": definition.name,
                    "title": definition.title,
                    "content": strip_leading_heading(result.text),
                    "tokens": result.total_tokens,
                }
            )
            await self._save_progress(job, generated, index + 1, len(catalogue))

        markdown = "\n\n".join(f"## {s['title']}\n\n{s['content']}" for s in generated)
        return markdown, sum(s.get("tokens", 0) for s in generated)

    async def _generate_single_pass(self, job: GenerationJob) -> Tuple[str, int]:
        if job.start_index >= 1 and job.generated:
            stored = job.generated[0]
            return stored["content"], stored.get("tokens", 0)

        await self._save_progress(job, [], 0, 1)
        prompt = self.prompt_loader.render_template(job.template, job.context)
        result = await self.completion_service.generate(
            prompt,
            CompletionOptions(
                system_prompt=job.template.system_prompt,
                use_cache=True,
                cache_ttl_hours=self.settings.business_plan_cache_ttl_hours,
                operation=f"{job.document_type}_GENERATION",
                client_id=str(job.client_id),
                user_id=job.user_id,
                metadata={"job_id": job.job_id, "template_name": job.template.name},
            ),
        )
        generated = [{"name": "document", "content": result.text, "tokens": result.total_tokens}]
        await self._save_progress(job, generated, 1, 1)
        return result.text, result.total_tokens

    async def _save_progress(
        self, job: GenerationJob, generated: List[Dict[str, Any]], done: int, total: int
    ) -> None:
        await self.checkpoint_manager.save_checkpoint(
            CheckpointData(
                job_id=job.job_id,
                job_type=job.document_type,
                client_id=job.client_id,
                total_sections=total,
                completed_sections=done,
                current_section=done,
                generated_content=generated,
                prompt_context=job.context,
                metadata={"mode": job.mode, "month": job.month},
            )
        )

    async def _persist_document(self, job: GenerationJob, markdown: str, tokens: int) -> Document:
        repository = self._repository(job.document_type)
        fields: Dict[str, Any] = {
            "client_id": job.client_id,
            "version": 1,
            "status": DocumentStatus.DRAFT.value,
            "content_markdown": markdown,
            "generated_by": job.user_id,
        }
        if job.document_type == DocumentType.DELIVERABLE.value:
            fields.update(month=job.month, title=month_title(job.month))

        try:
            document = await repository.create(commit=False, **fields)
        except IntegrityError as e:
            await repository.rollback()
            raise ConflictError(
                f"{document_label(job.document_type).capitalize()} already exists for client "
                f"{job.client_id}",
                original_error=e,
            ) from e

        await self.section_store.store_sections(
            document.id, job.document_type, markdown, job.user_id, tokens
        )
        return document

    async def _mark_failed(self, job: GenerationJob, error: Exception) -> None:
        await self.business_plans.rollback()
        try:
            if await self.checkpoint_manager.get_checkpoint(job.job_id) is None:
                return
            await self.checkpoint_manager.fail_checkpoint(job.job_id, str(error))
        except CheckpointError:
            LOGGER.error(
                "Could not mark checkpoint as failed", exc_info=True, extra={"job_id": job.job_id}
            )

    async def _notify_generated(self, job: GenerationJob, document: Document) -> None:
        suffix = " (resumed from checkpoint)" if job.resumed else ""
        if job.document_type == DocumentType.BUSINESS_PLAN.value:
            event_type = EventType.BUSINESS_PLAN_GENERATED
            description = f"Generated business plan v{document.version}{suffix}"
        else:
            event_type = EventType.DELIVERABLE_GENERATED
            description = f"Generated deliverable: {document.title}{suffix}"

        await self.notifier.notify(
            GenerationEvent(
                type=event_type,
                client_id=job.client_id,
                user_id=job.user_id,
                description=description,
                metadata={"job_id": job.job_id, "document_id": str(document.id)},
            )
        )

    async def _recombine(
        self, document_type: str, document_id: UUID
    ) -> Tuple[Document, List[Any]]:
        """Rebuild ``content_markdown`` from the stored sections and commit it."""
        document = await self._get_document(document_type, document_id, for_update=True)
        sections = await self.section_store.get_sections(document_id, document_type)
        document.content_markdown = combine_sections(sections)
        await self.business_plans.commit()
        return document, sections

    async def _recombine_after_failure(self, document_type: str, document_id: UUID, log) -> None:
        await self.business_plans.rollback()
        try:
            await self._recombine(document_type, document_id)
        except (AppError, SQLAlchemyError):
            await self.business_plans.rollback()
            log.error("Could not recombine document after a failed regeneration", exc_info=True)

    async def _get_document(
        self, document_type: str, document_id: UUID, for_update: bool = False
    ) -> Document:
        repository = self._repository(document_type)
        if for_update:
            document = await repository.get_for_update(document_id)
        else:
            document = await repository.get_by_id(document_id)
        if document is None:
            raise NotFoundError(document_label(document_type).capitalize(), str(document_id))
        return document

    def _repository(self, document_type: str) -> Union[BusinessPlanRepository, DeliverableRepository]:
        if document_type == DocumentType.BUSINESS_PLAN.value:
            return self.business_plans
        if document_type == DocumentType.DELIVERABLE.value:
            return self.deliverables
        raise ValidationError(f"Unknown document type: {document_type}")


def build_generation_orchestrator(
    session: AsyncSession,
    llm_client: CompletionClient,
    cache_store: Optional[CacheStore] = None,
    notifier: Optional[NotificationSink] = None,
    clock: Optional[Callable[[], datetime]] = None,
    generation_settings: Optional[GenerationSettings] = None,
) -> GenerationOrchestrator:
    """Wire an orchestrator and its collaborators onto one session."""
    gen_settings = generation_settings or settings.generation
    notifier = notifier or ActivityLogNotifier(ActivityRepository(session))
    deliverables = DeliverableRepository(session)

    completion_service = CompletionService(
        llm_client=llm_client,
        cache_store=cache_store
        or DatabaseCacheStore(PromptCacheRepository(session), gen_settings.prompt_cache_max_entries),
        budget_repository=TokenBudgetRepository(session),
        usage_repository=TokenUsageRepository(session),
        notifier=notifier,
    )

    return GenerationOrchestrator(
        context_builder=ContextBuilder(ClientRepository(session), deliverables, clock=clock),
        prompt_loader=PromptTemplateLoader(PromptTemplateRepository(session)),
        completion_service=completion_service,
        section_store=SectionStore(SectionRepository(session)),
        checkpoint_manager=CheckpointManager(CheckpointRepository(session)),
        business_plans=BusinessPlanRepository(session),
        deliverables=deliverables,
        notifier=notifier,
        generation_settings=gen_settings,
    )
