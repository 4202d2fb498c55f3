from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.models.form_submission import FormSubmission, FormSubmissionResponse


class SubmissionRepo:
    @staticmethod
    async def create(
        db: AsyncSession, submission: FormSubmission, responses: list[FormSubmissionResponse]
    ) -> FormSubmission:
        """Insert the submission and its answers in one commit."""
        db.add(submission)
        await db.flush()
        for response in responses:
            response.submission_id = submission.id
            db.add(response)
        await db.commit()
        await db.refresh(submission)
        return submission

    @staticmethod
    async def list_for_block(
        db: AsyncSession, user_id: int, project_id: int, module_id: int, block_id: int
    ) -> list[FormSubmission]:
        result = await db.execute(
            select(FormSubmission)
            .where(
                FormSubmission.user_id == user_id,
                FormSubmission.project_id == project_id,
                FormSubmission.module_id == module_id,
                FormSubmission.block_id == block_id,
            )
            .order_by(FormSubmission.submitted_at.asc(), FormSubmission.id.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_responses(db: AsyncSession, submission_ids: list[int]) -> list[FormSubmissionResponse]:
        if not submission_ids:
            return []
        result = await db.execute(
            select(FormSubmissionResponse)
            .where(FormSubmissionResponse.submission_id.in_(submission_ids))
            .order_by(FormSubmissionResponse.submission_id, FormSubmissionResponse.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def _delete_where(db: AsyncSession, *criteria) -> int:
        # Responses are removed explicitly: SQLite ignores ON DELETE CASCADE
        # unless foreign keys are switched on for the connection.
        ids = select(FormSubmission.id).where(*criteria)
        await db.execute(delete(FormSubmissionResponse).where(FormSubmissionResponse.submission_id.in_(ids)))
        result = await db.execute(delete(FormSubmission).where(*criteria))
        await db.commit()
        return result.rowcount

    @staticmethod
    async def delete_for_block(db: AsyncSession, user_id: int, project_id: int, module_id: int, block_id: int) -> int:
        return await SubmissionRepo._delete_where(
            db,
            FormSubmission.user_id == user_id,
            FormSubmission.project_id == project_id,
            FormSubmission.module_id == module_id,
            FormSubmission.block_id == block_id,
        )

    @staticmethod
    async def delete_for_project(db: AsyncSession, user_id: int, project_id: int) -> int:
        return await SubmissionRepo._delete_where(
            db,
            FormSubmission.user_id == user_id,
            FormSubmission.project_id == project_id,
        )
