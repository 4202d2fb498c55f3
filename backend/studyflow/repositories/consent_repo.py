"""
Consent form and consent response persistence.

Responses are append-only: there is no update. Deletion is only reachable
through the participant-removal composite (ProgressTracker.remove_participant),
never as a standalone delete. Deleting a form leaves its responses in place.
"""
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.database import insert_for
from studyflow.models.consent import ConsentForm, ConsentResponse


class ConsentRepo:
    # ── forms ────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_form(db: AsyncSession, project_id: int) -> Optional[ConsentForm]:
        result = await db.execute(select(ConsentForm).where(ConsentForm.project_id == project_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def save_form(
        db: AsyncSession,
        project_id: int,
        content_in_markdown: str,
        contact_information_display: str,
        institution_information_display: str,
    ) -> ConsentForm:
        """INSERT … ON CONFLICT (project_id) DO UPDATE; one form per project."""
        values = {
            "content_in_markdown": content_in_markdown,
            "contact_information_display": contact_information_display,
            "institution_information_display": institution_information_display,
        }
        insert = insert_for(db)
        stmt = insert(ConsentForm).values(project_id=project_id, **values).on_conflict_do_update(
            index_elements=["project_id"], set_={**values, "updated_at": func.now()}
        )
        await db.execute(stmt)
        await db.commit()
        form = await ConsentRepo.get_form(db, project_id)
        await db.refresh(form)
        return form

    @staticmethod
    async def delete_form(db: AsyncSession, project_id: int) -> None:
        """Deletes the form row only; recorded responses stay until their participant is removed."""
        await db.execute(delete(ConsentForm).where(ConsentForm.project_id == project_id))
        await db.commit()

    # ── responses ────────────────────────────────────────────────────────────

    @staticmethod
    async def create_response(db: AsyncSession, response: ConsentResponse) -> ConsentResponse:
        db.add(response)
        await db.commit()
        await db.refresh(response)
        return response

    @staticmethod
    async def get_response(db: AsyncSession, project_id: int, response_id: int) -> Optional[ConsentResponse]:
        result = await db.execute(
            select(ConsentResponse).where(
                ConsentResponse.id == response_id,
                ConsentResponse.project_id == project_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_responses(db: AsyncSession, project_id: int) -> list[ConsentResponse]:
        result = await db.execute(
            select(ConsentResponse)
            .where(ConsentResponse.project_id == project_id)
            .order_by(ConsentResponse.date_consented.asc(), ConsentResponse.id.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def delete_responses_for_participant(db: AsyncSession, participant_id: int, project_id: int) -> int:
        result = await db.execute(
            delete(ConsentResponse).where(
                ConsentResponse.project_id == project_id,
                ConsentResponse.participant_id == participant_id,
            )
        )
        await db.commit()
        return result.rowcount
