# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.
# Sans cet import, les FK comme enrollments.student_id → users.id échouent
# avec NoReferencedTableError si user.py n'est pas chargé avant school_class.py.

from classsync.models.user import User  # noqa: F401  (doit précéder les autres)
from classsync.models.school_class import ClassSession, Enrollment  # noqa: F401
from classsync.models.quiz import Question, Quiz, QuizSubmission  # noqa: F401
from classsync.models.chat import ChatMessage, GroupNote  # noqa: F401
