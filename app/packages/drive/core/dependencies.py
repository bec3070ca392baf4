"""依赖注入模块：为路由提供进程内唯一的实体编排器。"""

from functools import lru_cache

from app.packages.drive.core.config import get_settings
from app.packages.drive.services.entity_service import EntityLifecycleManager


@lru_cache
def get_entity_manager() -> EntityLifecycleManager:
    """首次调用时按配置构建存储后端；测试中可通过 ``dependency_overrides`` 替换。"""
    return EntityLifecycleManager.from_settings(get_settings())


async def close_entity_manager() -> None:
    """停机钩子：等待后台任务收尾并关闭记录存储；从未构建过则什么也不做。"""
    if get_entity_manager.cache_info().currsize:
        await get_entity_manager().close()
        get_entity_manager.cache_clear()
