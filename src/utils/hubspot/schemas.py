"""
JSON Schemas for HubSpot company tool arguments
"""

from typing import Any, Dict

from jsonschema import Draft202012Validator

LIFECYCLE_STAGES = ["lead", "customer", "opportunity", "subscriber", "other"]

SEARCH_OPERATORS = [
    "EQ",
    "NEQ",
    "LT",
    "LTE",
    "GT",
    "GTE",
    "BETWEEN",
    "IN",
    "NOT_IN",
    "HAS_PROPERTY",
    "NOT_HAS_PROPERTY",
    "CONTAINS_TOKEN",
    "NOT_CONTAINS_TOKEN",
]

# Known company properties; anything else is passed through to HubSpot untouched
COMPANY_PROPERTIES_SCHEMA = {
    "type": "object",
    "description": "Company properties to set. Unlisted HubSpot properties are accepted as-is.",
    "properties": {
        "name": {"type": "string", "description": "Company name"},
        "domain": {"type": "string", "description": "Company website domain"},
        "website": {"type": "string", "description": "Company website URL"},
        "description": {"type": "string", "description": "Company description"},
        "industry": {"type": "string", "description": "Company industry"},
        "numberofemployees": {
            "type": "number",
            "description": "Number of employees",
        },
        "annualrevenue": {"type": "number", "description": "Annual revenue"},
        "address": {"type": "string", "description": "Street address"},
        "address2": {"type": "string", "description": "Street address line 2"},
        "city": {"type": "string", "description": "City"},
        "state": {"type": "string", "description": "State/province/region"},
        "zip": {"type": "string", "description": "Postal code"},
        "country": {"type": "string", "description": "Country"},
        "phone": {"type": "string", "description": "Phone number"},
        "lifecyclestage": {
            "type": "string",
            "enum": LIFECYCLE_STAGES,
            "description": "Lifecycle stage of the company",
        },
    },
    "additionalProperties": True,
}

ASSOCIATIONS_SCHEMA = {
    "type": "array",
    "description": "Records to associate with the new company",
    "items": {
        "type": "object",
        "properties": {
            "to": {
                "type": "object",
                "properties": {"id": {"type": "string"}},
                "required": ["id"],
            },
            "types": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "associationCategory": {
                            "type": "string",
                            "enum": [
                                "HUBSPOT_DEFINED",
                                "USER_DEFINED",
                                "INTEGRATOR_DEFINED",
                            ],
                        },
                        "associationTypeId": {"type": "integer"},
                    },
                    "required": ["associationCategory", "associationTypeId"],
                },
            },
        },
        "required": ["to", "types"],
    },
}

FILTER_GROUPS_SCHEMA = {
    "type": "array",
    "description": "Filter groups. Filters within a group are ANDed, groups are ORed.",
    "items": {
        "type": "object",
        "properties": {
            "filters": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "propertyName": {"type": "string"},
                        "operator": {"type": "string", "enum": SEARCH_OPERATORS},
                        "value": {},
                        "highValue": {},
                        "values": {"type": "array"},
                    },
                    "required": ["propertyName", "operator"],
                },
            },
        },
        "required": ["filters"],
    },
}

PROPERTY_NAMES_SCHEMA = {
    "type": "array",
    "items": {"type": "string"},
}

ADD_SCHEMA = {
    "type": "object",
    "properties": {
        "a": {"type": "number", "description": "First number"},
        "b": {"type": "number", "description": "Second number"},
    },
    "required": ["a", "b"],
}

CREATE_COMPANY_SCHEMA = {
    "type": "object",
    "properties": {
        "properties": COMPANY_PROPERTIES_SCHEMA,
        "associations": ASSOCIATIONS_SCHEMA,
    },
    "required": ["properties"],
}

UPDATE_COMPANY_SCHEMA = {
    "type": "object",
    "properties": {
        "companyId": {"type": "string", "description": "HubSpot company ID"},
        "properties": COMPANY_PROPERTIES_SCHEMA,
    },
    "required": ["companyId", "properties"],
}

GET_COMPANY_SCHEMA = {
    "type": "object",
    "properties": {
        "companyId": {"type": "string", "description": "HubSpot company ID"},
        "properties": {
            **PROPERTY_NAMES_SCHEMA,
            "description": "Company properties to return",
        },
        "associations": {
            **PROPERTY_NAMES_SCHEMA,
            "description": "Object types to retrieve associated IDs for",
        },
    },
    "required": ["companyId"],
}

SEARCH_COMPANIES_SCHEMA = {
    "type": "object",
    "properties": {
        "filterGroups": FILTER_GROUPS_SCHEMA,
        "properties": {
            **PROPERTY_NAMES_SCHEMA,
            "description": "Company properties to return",
        },
        "limit": {
            "type": "integer",
            "minimum": 1,
            "maximum": 100,
            "description": "Maximum number of results (1-100)",
        },
        "after": {"type": "string", "description": "Paging cursor"},
        "sorts": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "propertyName": {"type": "string"},
                    "direction": {
                        "type": "string",
                        "enum": ["ASCENDING", "DESCENDING"],
                    },
                },
                "required": ["propertyName", "direction"],
            },
        },
    },
    "required": ["filterGroups"],
}

TOOL_INPUT_SCHEMAS = {
    "add": ADD_SCHEMA,
    "crm_create_company": CREATE_COMPANY_SCHEMA,
    "crm_update_company": UPDATE_COMPANY_SCHEMA,
    "crm_get_company": GET_COMPANY_SCHEMA,
    "crm_search_companies": SEARCH_COMPANIES_SCHEMA,
}


class ToolArgumentError(ValueError):
    """Raised when tool arguments do not match the tool's input schema"""


def validate_tool_arguments(tool_name: str, arguments: Dict[str, Any]) -> None:
    """Reject arguments that do not match the tool's input schema"""
    validator = Draft202012Validator(TOOL_INPUT_SCHEMAS[tool_name])
    errors = sorted(
        validator.iter_errors(arguments), key=lambda err: [str(p) for p in err.path]
    )
    if errors:
        messages = "; ".join(
            f"{'/'.join(map(str, err.path)) or '<root>'}: {err.message}"
            for err in errors[:5]
        )
        raise ToolArgumentError(f"Invalid arguments for {tool_name}: {messages}")
