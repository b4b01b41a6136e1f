from dataclasses import dataclass
from typing import Any, Optional

from flask import jsonify


@dataclass
class ActionResult:
    """
    統一的回傳格式

    每個 action 都回傳這個物件,不直接 raise,
    view 只要檢查 success 就知道要顯示資料還是錯誤訊息
    """
    success: bool
    data: Any = None
    error: Optional[str] = None
    status: int = 200

    def to_dict(self):
        return {
            'success': self.success,
            'data': self.data,
            'error': self.error
        }

    def to_response(self):
        """轉成 Flask view 可以直接 return 的 (response, status)"""
        return jsonify(self.to_dict()), self.status


def success(data=None, status=200):
    """建立成功結果"""
    return ActionResult(success=True, data=data, error=None, status=status)


def failure(error, status=400):
    """建立失敗結果"""
    return ActionResult(success=False, data=None, error=error, status=status)
