"""Employee workflow module: transition table and facade."""

from workflow_modules.employee.service import EMPLOYEE_DEFINITION, EmployeeWorkflow
from workflow_modules.employee.workflows import EMPLOYEE_TABLE

__all__ = ["EMPLOYEE_DEFINITION", "EMPLOYEE_TABLE", "EmployeeWorkflow"]
