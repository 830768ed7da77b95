import logging

from todolist.models import STATUS_DONE
from todolist.validation import BulkOperationInput, build_update_patch, validate_for_update

logger = logging.getLogger(__name__)


def apply_bulk_operation(store, operation, task_ids, data=None, tz=None):
    """
    对一组任务执行批量操作

    不存在的 ID 直接忽略，只影响返回的数量。
    返回 (结果字典, 提示信息)。
    """
    bulk = BulkOperationInput.from_payload(
        {'operation': operation, 'taskIds': task_ids, 'data': data})

    if bulk.operation == 'delete':
        deleted = store.delete_many(bulk.task_ids)
        logger.info("Bulk delete requested=%s deleted=%s", len(bulk.task_ids), deleted)
        return {'deletedCount': deleted}, 'Tasks deleted successfully'

    if bulk.operation == 'update':
        patch = build_update_patch(validate_for_update(bulk.data, tz))
        modified = store.update_many(bulk.task_ids, patch)
        logger.info("Bulk update fields=%s modified=%s", sorted(patch), modified)
        return {'modifiedCount': modified}, 'Tasks updated successfully'

    modified = store.update_many(bulk.task_ids, {'completed': True, 'status': STATUS_DONE})
    logger.info("Bulk complete modified=%s", modified)
    return {'modifiedCount': modified}, 'Tasks marked as completed'
