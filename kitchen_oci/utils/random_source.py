"""
ランダム値生成ユーティリティ

ホスト名、DBシステム表示名、管理者パスワードなどの生成に使用する乱数源です。
Request Builder へ明示的に注入することで、テストでは固定値を返す実装や
シード付き乱数に差し替えられます。
"""
import random
import string
from typing import Optional

# DB 管理者パスワードに使用できる特殊文字（OCI Database の制約）
PASSWORD_SPECIAL_CHARS = "_#-"
PASSWORD_LENGTH = 12


class RandomSource:
    """注入可能な乱数源"""

    def __init__(self, rng: Optional[random.Random] = None):
        # 本番ではOS乱数、テストではシード付き random.Random を渡す
        self._rng = rng or random.SystemRandom()

    def random_string(self, length: int) -> str:
        """英小文字と数字からなるランダム文字列を返す"""
        alphabet = string.ascii_lowercase + string.digits
        return "".join(self._rng.choice(alphabet) for _ in range(length))

    def random_number(self, digits: int) -> str:
        """指定桁数の数字文字列を返す（先頭は0以外）"""
        if digits <= 0:
            return ""
        head = self._rng.choice("123456789")
        tail = "".join(self._rng.choice(string.digits) for _ in range(digits - 1))
        return head + tail

    def random_password(self) -> str:
        """
        DB 管理者パスワードを生成

        英大文字・英小文字・数字・特殊文字をそれぞれ2文字以上含み、
        先頭は英字になります。

        Returns:
            str: 生成したパスワード
        """
        required = (
            [self._rng.choice(string.ascii_uppercase) for _ in range(2)]
            + [self._rng.choice(string.ascii_lowercase) for _ in range(2)]
            + [self._rng.choice(string.digits) for _ in range(2)]
            + [self._rng.choice(PASSWORD_SPECIAL_CHARS) for _ in range(2)]
        )
        pool = string.ascii_letters + string.digits + PASSWORD_SPECIAL_CHARS
        rest = [self._rng.choice(pool) for _ in range(PASSWORD_LENGTH - len(required) - 1)]
        body = required + rest
        self._rng.shuffle(body)
        return self._rng.choice(string.ascii_letters) + "".join(body)
