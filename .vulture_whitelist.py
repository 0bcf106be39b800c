from src.authority.ca.keys import KeyPair
from src.authority.domain.models import IssuedCertificate
from src.authority.domain.roles import CertificateRole, TemplatePolicy
from src.authority.metrics import bootstrap_completed_gauge
from src.common.config import Settings
from src.common.logging import logger
from src.main import health_check, index, metrics_endpoint, trust_anchors

# Pydantic Settings
Settings.model_config
Settings.DEMO_HOST
Settings.DEMO_PORT

# Dataclass fields read by callers and tests
KeyPair.public_key_der
IssuedCertificate.is_self_signed
TemplatePolicy.default_common_name

# Enums
CertificateRole.ROOT
CertificateRole.SERVER_LEAF
CertificateRole.CLIENT_LEAF

# Metrics registered with OTel callbacks
bootstrap_completed_gauge

# FastAPI routes
health_check
index
metrics_endpoint
trust_anchors

# Module logger for ad hoc use
logger
