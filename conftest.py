# Makes the flat module imports used by the services resolvable for pytest and IDEs
import sys
from pathlib import Path

project_root = Path(__file__).parent
sys.path.insert(0, str(project_root / "shared"))
sys.path.insert(0, str(project_root / "services" / "purchase-service"))
