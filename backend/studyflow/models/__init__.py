from studyflow.models.user import User
from studyflow.models.project import Project, ProjectUserLink
from studyflow.models.consent import ConsentForm, ConsentResponse
from studyflow.models.module import Module, ProjectModule
from studyflow.models.block import Block, BlockUserStatus, ModuleBlock
from studyflow.models.form_submission import FormSubmission, FormSubmissionResponse
from studyflow.models.note import Note

__all__ = [
    "User",
    "Project",
    "ProjectUserLink",
    "ConsentForm",
    "ConsentResponse",
    "Module",
    "ProjectModule",
    "Block",
    "ModuleBlock",
    "BlockUserStatus",
    "FormSubmission",
    "FormSubmissionResponse",
    "Note",
]
