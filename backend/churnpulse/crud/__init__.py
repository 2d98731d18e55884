from .user_data import get_user_data, upsert_user_data
from .api_keys import create_api_key, get_active_api_key, mark_api_key_used, revoke_api_key
from .sdk_health import create_sdk_health_log
from .csv_uploads import create_csv_upload
