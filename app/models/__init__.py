from .user import User
from .course import Course
from .lesson import Lesson, Quiz
from .enrollment import Enrollment, Payment
from .progress import LessonCompletion
from .activity import ActivityLog, Notification
