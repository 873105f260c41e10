"""
Azure Cosmos DB Configuration.

Centralized configuration for all Cosmos DB settings used across the application.
This ensures consistency between the application, scripts, and data population tools.

Environment Variables (optional overrides):
    COSMOS_ENDPOINT - Override the default Cosmos DB endpoint
    COSMOS_DATABASE - Override the default database name
"""

import os

# =============================================================================
# COSMOS DB CONNECTION
# =============================================================================

COSMOS_ENDPOINT = os.getenv(
    "COSMOS_ENDPOINT",
    "https://carecoord-nosql-db.documents.azure.com:443/"
)

DATABASE_NAME = os.getenv(
    "COSMOS_DATABASE",
    "carecoord"
)

# =============================================================================
# HOSPITAL DATA CONTAINERS
# =============================================================================

# Container names for hospital data
# Format: logical_name -> (container_name, partition_key_path)
HOSPITAL_CONTAINERS = {
    "patients": ("Hospital_Patients", "/id"),
    "doctors": ("Hospital_Doctors", "/id"),
    "departments": ("Hospital_Departments", "/id"),
    "appointments": ("Hospital_Appointments", "/id"),
    "labTests": ("Hospital_LabTests", "/id"),
    "availableLabTests": ("Hospital_AvailableLabTests", "/id"),
    "labOperators": ("Hospital_LabOperators", "/id"),
    "notifications": ("Hospital_Notifications", "/id"),
    "global": ("Hospital_Global", "/id"),
}

# Simple container name lookup (without partition key)
HOSPITAL_CONTAINER_NAMES = {
    key: name for key, (name, _) in HOSPITAL_CONTAINERS.items()
}

# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_container_name(logical_name: str) -> str:
    """Get the actual container name for a logical collection name."""
    if logical_name in HOSPITAL_CONTAINER_NAMES:
        return HOSPITAL_CONTAINER_NAMES[logical_name]
    return logical_name

