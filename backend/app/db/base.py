from backend.app.db.base_class import Base

# Import models to register metadata for Base.metadata.create_all in tests
from backend.app.models.user import User  # noqa: F401
from backend.app.models.person import Person  # noqa: F401
from backend.app.models.contact_point import ContactPoint  # noqa: F401
from backend.app.models.guardian_relationship import GuardianRelationship  # noqa: F401
from backend.app.models.sibling_relationship import SiblingRelationship  # noqa: F401
from backend.app.models.program_profile import ProgramProfile  # noqa: F401
from backend.app.models.batch import Batch  # noqa: F401
from backend.app.models.enrollment import Enrollment  # noqa: F401
from backend.app.models.billing_assignment import BillingAssignment  # noqa: F401
from backend.app.models.teacher import Teacher  # noqa: F401
from backend.app.models.school_class import SchoolClass  # noqa: F401
from backend.app.models.class_teacher import ClassTeacher  # noqa: F401
from backend.app.models.class_enrollment import ClassEnrollment  # noqa: F401
from backend.app.models.attendance_session import AttendanceSession  # noqa: F401
from backend.app.models.attendance_record import AttendanceRecord  # noqa: F401
