from dairyflow.utils.helpers import log_audit, round_money, parse_date, to_formdata
from dairyflow.utils.settings import get_setting, set_setting

__all__ = ["log_audit", "round_money", "parse_date", "to_formdata", "get_setting", "set_setting"]
