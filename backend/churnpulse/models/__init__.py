from .user_data import UserData
from .api_keys import APIKey
from .sdk_health_logs import SDKHealthLog
from .csv_uploads import CSVUpload
