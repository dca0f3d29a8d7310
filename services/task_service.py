"""
services/task_service.py
------------------------
Business logic for managing a user's tasks.
"""

from typing import Optional

from models.task import Task
from services.validation import ValidationError, validate_description, validate_task_id
from storage import Storage
from utils.logger import get_logger

logger = get_logger(__name__)


class TaskService:
    """Validates input and drives the task repository on behalf of one caller."""

    def __init__(self, storage: Storage):
        self.task_repo = storage.tasks

    def add_task(self, owner_id: int, description: str) -> Task:
        """Create a task and return it as stored."""
        task_id = self.task_repo.create(validate_description(description), owner_id)
        return self.task_repo.get_by_id(task_id, owner_id)

    def get_task(self, task_id, owner_id: int) -> Task:
        return self.task_repo.get_by_id(validate_task_id(task_id), owner_id)

    def list_tasks(self, owner_id: int) -> list[Task]:
        return self.task_repo.list_by_owner(owner_id)

    def update_task(
        self,
        task_id,
        owner_id: int,
        description: Optional[str] = None,
        done: Optional[bool] = None,
    ) -> Task:
        """
        Change some fields of a task, keeping the others as they are.

        Args:
            task_id: ID of the task (int or numeric text).
            owner_id: The caller; only their own tasks are reachable.
            description: New text, or None to keep the current one.
            done: New completion flag, or None to keep the current one.

        Returns:
            The task as stored after the update.

        Raises:
            ValidationError: If no field is given or the description is invalid.
            TaskNotFoundError: If the task does not exist for this owner.
        """
        if description is None and done is None:
            raise ValidationError("at least one field must be provided for update")

        task = self.task_repo.get_by_id(validate_task_id(task_id), owner_id)
        if description is not None:
            task.description = validate_description(description)
        if done is not None:
            task.done = bool(done)

        self.task_repo.update(task, owner_id)
        logger.debug(f"Task #{task.id} updated by user {owner_id}")
        return self.task_repo.get_by_id(task.id, owner_id)

    def complete_task(self, task_id, owner_id: int) -> Task:
        return self.update_task(task_id, owner_id, done=True)

    def delete_task(self, task_id, owner_id: int) -> None:
        self.task_repo.delete(validate_task_id(task_id), owner_id)
