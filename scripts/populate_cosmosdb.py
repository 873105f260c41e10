"""
Cosmos DB Data Population Script for the Care-Coord hospital backend.

Creates the hospital containers (if missing) and upserts sample departments,
doctors, the lab test catalogue, a lab operator and the base fee using
AzureCliCredential.

Usage:
    python scripts/populate_cosmosdb.py

Environment:
    COSMOS_ENDPOINT - Override the default Cosmos DB endpoint
    COSMOS_DATABASE - Override the default database name
    SEED_STAFF_PASSWORD - Password given to the sample doctors and lab operator
"""

import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from azure.cosmos import CosmosClient, PartitionKey
from azure.cosmos.exceptions import CosmosHttpResponseError
from azure.identity import AzureCliCredential

from auth import hash_password
from config import settings

# Import configuration from shared module
from shared.cosmos_config import (
    COSMOS_ENDPOINT,
    DATABASE_NAME,
    HOSPITAL_CONTAINERS,
)

# Configure logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

STAFF_PASSWORD = os.getenv("SEED_STAFF_PASSWORD", "carecoord123")


# =============================================================================
# SAMPLE DATA
# =============================================================================

DEPARTMENTS = [
    {"id": "cardiology", "name": "Cardiology", "description": "Heart and blood vessel care", "feePercentage": 15},
    {"id": "neurology", "name": "Neurology", "description": "Brain and nervous system", "feePercentage": 12},
    {"id": "pediatrics", "name": "Pediatrics", "description": "Care for children", "feePercentage": 5},
    {"id": "general-medicine", "name": "General Medicine", "description": "Primary care", "feePercentage": 0},
]

DOCTORS = [
    {"id": "dr-ahmed", "name": "Dr. Sara Ahmed", "email": "sara.ahmed@carecoord.local",
     "specialization": "Cardiologist", "departmentId": "cardiology", "departmentName": "Cardiology",
     "feePercentage": 10, "availability": "Mon-Fri, 9 AM - 1 PM"},
    {"id": "dr-khan", "name": "Dr. Imran Khan", "email": "imran.khan@carecoord.local",
     "specialization": "Neurologist", "departmentId": "neurology", "departmentName": "Neurology",
     "feePercentage": 8, "availability": "Tue-Sat, 2 PM - 6 PM"},
    {"id": "dr-lee", "name": "Dr. Mina Lee", "email": "mina.lee@carecoord.local",
     "specialization": "Pediatrician", "departmentId": "pediatrics", "departmentName": "Pediatrics",
     "feePercentage": 5, "availability": "Mon-Thu, 10 AM - 4 PM"},
    {"id": "dr-rossi", "name": "Dr. Marco Rossi", "email": "marco.rossi@carecoord.local",
     "specialization": "General Physician", "departmentId": "general-medicine",
     "departmentName": "General Medicine", "feePercentage": 0, "availability": "Daily, 9 AM - 5 PM"},
]

AVAILABLE_LAB_TESTS = [
    {"id": "cbc", "name": "Complete Blood Count (CBC)", "description": "Red cells, white cells and platelets",
     "price": 800, "preparationInstructions": "No fasting required"},
    {"id": "lft", "name": "Liver Function Test", "description": "Liver enzymes and proteins",
     "price": 1500, "preparationInstructions": "Fast for 8 hours"},
    {"id": "rft", "name": "Renal Function Test", "description": "Kidney function markers",
     "price": 1400, "preparationInstructions": "No fasting required"},
    {"id": "lipid", "name": "Lipid Profile", "description": "Cholesterol and triglycerides",
     "price": 1200, "preparationInstructions": "Fast for 10-12 hours"},
]

LAB_OPERATORS = [
    {"id": "lab-1", "name": "Main Lab", "email": "lab@carecoord.local"},
]


# =============================================================================
# DATA PREPARATION
# =============================================================================

def prepare_staff(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Attach a hashed password to doctor and lab operator records."""
    items = []
    for record in records:
        item = record.copy()
        item["hashedPassword"] = hash_password(STAFF_PASSWORD)
        items.append(item)
    return items


def prepare_global() -> List[Dict[str, Any]]:
    return [{"id": "baseAppointmentFee", "value": settings.default_base_appointment_fee}]


# =============================================================================
# COSMOS DB OPERATIONS
# =============================================================================

def upsert_items(container, items: List[Dict[str, Any]]) -> int:
    """Upsert items into a container."""
    count = 0
    for item in items:
        try:
            container.upsert_item(item)
            count += 1
        except CosmosHttpResponseError as e:
            logger.error(f"Failed to upsert item {item.get('id')}: {e}")
    return count


def main():
    """Main function to populate Cosmos DB with hospital sample data."""
    logger.info("=" * 60)
    logger.info("Care-Coord - Cosmos DB Population Script")
    logger.info("=" * 60)
    logger.info(f"Endpoint: {COSMOS_ENDPOINT}")
    logger.info(f"Database: {DATABASE_NAME}")
    logger.info("Authentication: AzureCliCredential")
    logger.info("=" * 60)

    credential = AzureCliCredential()
    client = CosmosClient(COSMOS_ENDPOINT, credential=credential)

    logger.info(f"Connecting to database '{DATABASE_NAME}'...")
    try:
        database = client.get_database_client(DATABASE_NAME)
        database.read()
        logger.info(f"Database '{DATABASE_NAME}' found")
    except CosmosHttpResponseError as e:
        logger.error(f"Database '{DATABASE_NAME}' not found or access denied: {e}")
        logger.error("Please create the database first or check RBAC permissions")
        return

    logger.info("\n--- Hospital Containers ---")
    for key, (container_name, partition_key) in HOSPITAL_CONTAINERS.items():
        database.create_container_if_not_exists(id=container_name, partition_key=PartitionKey(path=partition_key))
        logger.info(f"  {container_name} (partition: {partition_key})")

    data_sets = [
        ("departments", DEPARTMENTS),
        ("doctors", prepare_staff(DOCTORS)),
        ("availableLabTests", AVAILABLE_LAB_TESTS),
        ("labOperators", prepare_staff(LAB_OPERATORS)),
        ("global", prepare_global()),
    ]

    logger.info("\n--- Populating Hospital Data ---")
    total_items = 0
    for key, items in data_sets:
        container_name, _ = HOSPITAL_CONTAINERS[key]
        container = database.get_container_client(container_name)
        count = upsert_items(container, items)
        logger.info(f"  {container_name}: {count} items")
        total_items += count

    logger.info("\n" + "=" * 60)
    logger.info(f"COMPLETE: {total_items} total items populated")
    logger.info("Patients, appointments, lab tests and notifications are created at runtime")
    logger.info("=" * 60)


if __name__ == "__main__":
    main()
