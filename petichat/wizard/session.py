from __future__ import annotations

import logging

from petichat.core.errors import PetichatError
from petichat.wizard.backends import WizardBackend
from petichat.wizard.state import FIRST_STEP, LAST_STEP, WizardState


logger = logging.getLogger(__name__)


class WizardSession:
    """Linear three-step flow: facts (1), theses and jurisprudence (2), draft (3).

    Transitions that are not allowed are silent no-ops; ``advance`` and
    ``retreat`` return whether the step actually changed. Entering step 2 or
    3 triggers its fetch at most once, guarded by the loading flags.
    """

    def __init__(self, backend: WizardBackend, state: WizardState | None = None) -> None:
        self.backend = backend
        self.state = state or WizardState()

    def can_advance(self) -> bool:
        state = self.state
        if state.current_step >= LAST_STEP:
            return False
        if state.current_step == 1:
            return state.case_id is not None or state.facts_ready()
        # Leaving step 2 needs at least one selected thesis.
        return bool(state.selected_thesis_ids)

    async def advance(self) -> bool:
        if not self.can_advance():
            return False
        if self.state.current_step == 1 and self.state.case_id is None:
            self.state.case_id = await self.backend.create_case(
                client_name=self.state.client_name.strip(),
                case_type=self.state.case_type.strip(),
                facts_description=self.state.facts_description.strip(),
            )
        self.state.current_step += 1
        await self._on_enter(self.state.current_step)
        return True

    async def retreat(self) -> bool:
        if self.state.current_step <= FIRST_STEP:
            return False
        self.state.current_step -= 1
        await self._on_enter(self.state.current_step)
        return True

    async def _on_enter(self, step: int) -> None:
        if step == 2 and not self.state.theses and not self.state.theses_loading:
            await self.suggest_theses()
        elif step == 3 and self.state.document_id is None and not self.state.generating:
            await self.generate_document()

    async def suggest_theses(self) -> None:
        state = self.state
        if state.case_id is None or state.theses_loading:
            return
        state.theses_loading = True
        state.error = None
        try:
            theses = await self.backend.suggest_theses(state.case_id, document_type=state.document_type)
        except PetichatError as exc:
            # Surface the failure for a retry prompt; keep whatever was shown before.
            state.error = exc.message
            logger.warning("wizard_suggest_failed case_id=%s error=%s", state.case_id, type(exc).__name__)
            return
        finally:
            state.theses_loading = False
        state.theses = list(theses)
        # Fresh candidates invalidate ids picked from a previous list.
        known = {thesis["id"] for thesis in state.theses}
        state.selected_thesis_ids &= known

    async def load_jurisprudence(self, keywords: str | None = None, *, tribunal: str | None = None) -> None:
        state = self.state
        if state.jurisprudence_loading:
            return
        state.jurisprudence_loading = True
        state.error = None
        try:
            items = await self.backend.search_jurisprudence(keywords, tribunal=tribunal)
        except PetichatError as exc:
            state.error = exc.message
            logger.warning("wizard_jurisprudence_failed error=%s", type(exc).__name__)
            return
        finally:
            state.jurisprudence_loading = False
        # Selected precedents stay visible even when a new search no longer returns them.
        kept = [item for item in state.jurisprudences if item["id"] in state.selected_jurisprudence_ids]
        seen = {item["id"] for item in kept}
        state.jurisprudences = kept + [item for item in items if item["id"] not in seen]

    async def generate_document(self) -> None:
        state = self.state
        if state.case_id is None or state.generating:
            return
        state.generating = True
        state.error = None
        try:
            draft = await self.backend.generate_document(
                state.case_id,
                document_type=state.document_type,
                thesis_ids=set(state.selected_thesis_ids),
                jurisprudence_ids=set(state.selected_jurisprudence_ids),
            )
        except PetichatError as exc:
            state.error = exc.message
            logger.warning("wizard_generate_failed case_id=%s error=%s", state.case_id, type(exc).__name__)
            return
        finally:
            state.generating = False
        state.document_id = draft.document_id
        state.document_title = draft.title
        state.document_content = draft.content

    def toggle_thesis(self, thesis_id: str) -> None:
        self.state.selected_thesis_ids ^= {thesis_id}

    def toggle_jurisprudence(self, jurisprudence_id: str) -> None:
        self.state.selected_jurisprudence_ids ^= {jurisprudence_id}

    def reset(self) -> None:
        # Rows already persisted (case, document) are left for the orphan sweep.
        self.state = WizardState()
