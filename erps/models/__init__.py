# ERPS Warranty Lifecycle Database Models
# Import all models here for SQLAlchemy discovery

from erps.models.user import User                                # noqa
from erps.models.warranty import Warranty                        # noqa
from erps.models.inspection import Inspection                    # noqa
from erps.models.photo import Photo                              # noqa
from erps.models.verification_token import VerificationToken     # noqa
from erps.models.audit_history import AuditHistory               # noqa
from erps.models.reinstatement import Reinstatement              # noqa
from erps.models.inspection_reminder import InspectionReminder   # noqa
from erps.models.warranty_terms import WarrantyTerms               # noqa
