"""Seeded reference data: production standards and the question bank.

Labor hours are per unit; material costs are integer cents per unit.
Firestore may override either table (see FirestoreService); these tuples
are the defaults loaded once at import.
"""

from typing import Tuple

from models.production_standard import ProductionStandard, UnitOfMeasure
from models.questions import (
    AllOf,
    AnswerContains,
    AnswerEquals,
    AnyOf,
    DynamicQuestion,
    ResponseType,
)


def _std(service_type, subcategory, item, unit, hours=None, material=None) -> ProductionStandard:
    return ProductionStandard(
        service_type=service_type,
        subcategory=subcategory,
        item_description=item,
        unit_of_measure=unit,
        labor_hours_per_unit=hours,
        material_cost_per_unit=material,
    )


EACH = UnitOfMeasure.EACH
SQFT = UnitOfMeasure.SQUARE_FEET
LF = UnitOfMeasure.LINEAR_FEET
CY = UnitOfMeasure.CUBIC_YARDS
SQ = UnitOfMeasure.SQUARES


PRODUCTION_STANDARDS: Tuple[ProductionStandard, ...] = (
    # Plumbing
    _std("Plumbing", "Faucet Repair", "Standard faucet repair cartridge replacement", EACH, 1.25, 6000),
    _std("Plumbing", "Faucet Repair", "Simple faucet repair compression valve", EACH, 0.75, 1500),
    _std("Plumbing", "Faucet Repair", "Bathtub or shower faucet repair", EACH, 3.0, 10000),
    _std("Plumbing", "Leak Detection", "Leak diagnosis and pipe section repair", EACH, 1.5),
    _std("Plumbing", "Leak Detection", "Leak diagnosis and pipe section repair", EACH, material=4500),
    _std("Plumbing", "Leak Detection", "Supply line replacement under sink", EACH, 0.75, 2500),
    _std("Plumbing", "Drain Cleaning", "Basic drain clearing sink or tub", EACH, 1.5, 2000),
    _std("Plumbing", "Drain Cleaning", "Main sewer line clearing", EACH, 3.0, 6000),
    _std("Plumbing", "Toilet Repair", "Toilet repair flapper or fill valve", EACH, 1.0, 3000),
    # HVAC
    _std("HVAC", "Heating Repair", "Furnace diagnostic and repair", EACH, 2.0, 15000),
    _std("HVAC", "AC Repair", "Air conditioner diagnostic and repair", EACH, 2.0, 12000),
    _std("HVAC", "Thermostat Installation", "Programmable thermostat installation", EACH, 1.0, 12000),
    # Electrical
    _std("Electrical", "Outlet Repair", "Outlet replacement", EACH, 0.5, 1500),
    _std("Electrical", "Switch Replacement", "Light switch replacement", EACH, 0.5, 1200),
    _std("Electrical", "Light Fixture", "Light fixture installation", EACH, 1.5, 2500),
    _std("Electrical", "Panel Upgrade", "Electrical panel upgrade 200 amp", EACH, 10.0, 180000),
    # Deck building
    _std("Deck Building", "Deck Construction", "Pressure-treated deck framing and decking", SQFT, 0.25),
    _std("Deck Building", "Deck Construction", "Pressure-treated deck framing and decking", SQFT, material=1500),
    _std("Deck Building", "Deck Construction", "Composite deck framing and decking", SQFT, 0.3, 3000),
    _std("Deck Building", "Deck Construction", "Deck railing", LF, 0.3, 2500),
    _std("Deck Building", "Deck Maintenance", "Deck cleaning and staining", SQFT, 0.02, 50),
    # Landscaping
    _std("Landscaping", "Fence Installation", "Vinyl fence 6ft privacy", LF, 0.05, 2000),
    _std("Landscaping", "Fence Installation", "Wood privacy fence 6ft", LF, 0.06, 1800),
    _std("Landscaping", "Fence Installation", "Chain link fence residential", LF, 0.053, 1200),
    _std("Landscaping", "Garden Maintenance", "Manual mulch spreading standard", CY, 1.0, 1500),
    _std("Landscaping", "Lawn Maintenance", "Residential lawn mowing", SQFT, 0.000133, 3),
    _std("Landscaping", "Tree Trimming", "Tree trimming medium tree", EACH, 2.5, 500),
    # Painting
    _std("Painting", "Interior Painting", "Interior wall painting standard 2 coats", SQFT, 0.0057, 75),
    _std("Painting", "Interior Painting", "Interior painting high ceilings 10ft+", SQFT, 0.008, 75),
    _std("Painting", "Exterior Painting", "Exterior house painting standard", SQFT, 0.055, 150),
    # Roofing
    _std("Roofing", "Roof Replacement", "Full roof replacement tear-off and install", SQ, 2.0, 15000),
)


def _q(id, service_type, subcategory, sequence, text, options=None, required=True, conditional=None):
    return DynamicQuestion(
        id=id,
        service_type=service_type,
        subcategory=subcategory,
        question_text=text,
        response_type=ResponseType.CHOICE if options else ResponseType.TEXT,
        options=list(options or []),
        sequence=sequence,
        required_for_scope=required,
        conditional=conditional,
    )


SERVICE_QUESTIONS: Tuple[DynamicQuestion, ...] = (
    # Plumbing
    _q("plumbing-leak-location", "Plumbing", "Leak Detection", 1,
       "Where is the leak?",
       ["Kitchen sink", "Bathroom sink", "Toilet", "Water heater", "Basement", "Ceiling or wall", "Outside/Yard"]),
    _q("plumbing-leak-severity", "Plumbing", "Leak Detection", 2,
       "How bad is the leak?",
       ["Slow drip", "Steady leak", "Burst pipe or flooding"]),
    _q("plumbing-leak-pipe", "Plumbing", "Leak Detection", 3,
       "What kind of pipe is leaking, if you can tell?",
       ["Copper", "PVC", "PEX", "Galvanized", "Not sure"]),
    _q("plumbing-leak-damage", "Plumbing", "Leak Detection", 4,
       "Describe any water damage to walls, ceilings or floors.",
       required=False,
       conditional=AnyOf(predicates=[
           AnswerContains(question_id="plumbing-leak-location", substring="ceiling"),
           AnswerContains(question_id="plumbing-leak-severity", substring="flooding"),
       ])),
    _q("plumbing-leak-shutoff", "Plumbing", "Leak Detection", 5,
       "Can you shut off the water to the leaking fixture?",
       ["Yes", "No", "Not sure"], required=False),
    _q("plumbing-faucet-location", "Plumbing", "Faucet Repair", 1,
       "Where is the faucet located?",
       ["Kitchen sink", "Bathroom sink", "Bathtub", "Shower", "Outdoor/Hose bib"]),
    _q("plumbing-faucet-problem", "Plumbing", "Faucet Repair", 2,
       "What is the problem with the faucet?",
       ["Dripping/leaking", "Low water pressure", "Won't turn off", "Handle broken", "Sprayer issue"]),
    _q("plumbing-drain-which", "Plumbing", "Drain Cleaning", 1,
       "Which drain is clogged?",
       ["Kitchen sink", "Bathroom sink", "Shower/tub", "Toilet", "Main sewer line", "Multiple drains"]),
    _q("plumbing-drain-severity", "Plumbing", "Drain Cleaning", 2,
       "How severe is the clog?",
       ["Completely blocked", "Very slow drainage", "Occasional backup", "Gurgling sounds"]),
    _q("plumbing-general-problem", "Plumbing", "General Plumbing troubleshooting", 1,
       "Describe the plumbing problem and where it is."),
    _q("plumbing-general-urgency", "Plumbing", "General Plumbing troubleshooting", 2,
       "How urgent is the repair?",
       ["Emergency (major leak/no water)", "Within 24 hours", "Within a week", "Flexible timing"],
       required=False),
    # HVAC
    _q("hvac-heat-system", "HVAC", "Heating Repair", 1,
       "What type of heating system do you have?",
       ["Gas furnace", "Electric furnace", "Heat pump", "Boiler", "Not sure"]),
    _q("hvac-heat-status", "HVAC", "Heating Repair", 2,
       "What is the current status of your heating system?",
       ["Not running at all", "Running but no heat", "Heats unevenly", "Cycles on and off"]),
    _q("hvac-heat-age", "HVAC", "Heating Repair", 3,
       "Approximately how old is the heating system?",
       ["Less than 5 years", "5-10 years", "10-15 years", "More than 15 years", "Not sure"]),
    _q("hvac-heat-signs", "HVAC", "Heating Repair", 4,
       "Have you noticed any unusual noises, smells, or visible issues?",
       ["Strange noises", "Burning or gas smell", "Visible damage or corrosion", "No unusual signs"],
       required=False),
    _q("hvac-heat-gas-off", "HVAC", "Heating Repair", 5,
       "Have you shut off the gas supply and left the house?",
       ["Yes", "No"],
       conditional=AllOf(predicates=[
           AnswerContains(question_id="hvac-heat-signs", substring="gas smell"),
           AnswerContains(question_id="hvac-heat-system", substring="gas"),
       ])),
    _q("hvac-ac-issue", "HVAC", "AC Repair", 1,
       "What issue are you experiencing?",
       ["Not cooling", "Poor airflow", "Strange noises", "Water leaking", "High energy bills", "Other"]),
    _q("hvac-ac-system", "HVAC", "AC Repair", 2,
       "What type of system do you have?",
       ["Central AC", "Heat pump", "Mini-split", "Window unit", "Not sure"]),
    _q("hvac-ac-age", "HVAC", "AC Repair", 3,
       "Approximately how old is the system?",
       ["Less than 5 years", "5-10 years", "10-15 years", "15+ years", "Not sure"],
       required=False),
    # Electrical
    _q("electrical-outlet-count", "Electrical", "Outlet Repair", 1,
       "How many outlets need work? (e.g. 3 units)"),
    _q("electrical-outlet-problem", "Electrical", "Outlet Repair", 2,
       "What is wrong with the outlet?",
       ["No power", "Sparks or scorch marks", "Loose plug fit", "Need GFCI upgrade"]),
    # Deck building
    _q("deck-size", "Deck Building", "Deck Construction", 1,
       "How big should the deck be? (e.g. 12x16 or 200 sq ft)"),
    _q("deck-material", "Deck Building", "Deck Construction", 2,
       "Which decking material do you prefer?",
       ["Pressure-treated wood", "Composite", "Not sure"]),
    _q("deck-height", "Deck Building", "Deck Construction", 3,
       "How high off the ground will the deck be?",
       ["Ground level", "Raised (under 6 ft)", "Second story"]),
    _q("deck-railing", "Deck Building", "Deck Construction", 4,
       "Do you want a railing?",
       ["Yes", "No"]),
    _q("deck-railing-length", "Deck Building", "Deck Construction", 5,
       "About how many linear feet of railing?",
       conditional=AnswerEquals(question_id="deck-railing", value="Yes")),
    _q("deck-stairs", "Deck Building", "Deck Construction", 6,
       "Will the deck need stairs?",
       ["Yes", "No", "Not sure"], required=False),
    # Landscaping
    _q("fence-length", "Landscaping", "Fence Installation", 1,
       "How many linear feet of fence do you need?"),
    _q("fence-material", "Landscaping", "Fence Installation", 2,
       "What fence material would you like?",
       ["Vinyl", "Wood", "Chain link"]),
    _q("fence-old-removal", "Landscaping", "Fence Installation", 3,
       "Is there an old fence that needs to be removed?",
       ["Yes", "No"], required=False),
    _q("mulch-volume", "Landscaping", "Garden Maintenance", 1,
       "How many cubic yards of mulch do you need?"),
    _q("lawn-size", "Landscaping", "Lawn Maintenance", 1,
       "How large is the lawn? (e.g. 5,000 sq ft)"),
    _q("lawn-frequency", "Landscaping", "Lawn Maintenance", 2,
       "How often do you need mowing?",
       ["One-time", "Weekly", "Bi-weekly", "Monthly"]),
    # Painting
    _q("paint-interior-area", "Painting", "Interior Painting", 1,
       "About how many square feet of wall will be painted?"),
    _q("paint-interior-ceilings", "Painting", "Interior Painting", 2,
       "How high are the ceilings?",
       ["8 ft standard", "9 ft", "10 ft or higher"]),
    # Generic baseline
    _q("generic-service-describe", "Generic", "service", 1,
       "Can you describe the work you need done?"),
    _q("generic-service-size", "Generic", "service", 2,
       "Approximately how large is the area or scope of work?"),
    _q("generic-service-frequency", "Generic", "service", 3,
       "How often do you need this service?",
       ["One-time", "Weekly", "Bi-weekly", "Monthly", "As needed"], required=False),
    _q("generic-installation-what", "Generic", "installation", 1,
       "What exactly would you like to have built or installed?"),
    _q("generic-installation-size", "Generic", "installation", 2,
       "What are the dimensions or size requirements?"),
    _q("generic-installation-materials", "Generic", "installation", 3,
       "Do you already have the materials, or should the vendor provide them?",
       ["Vendor provides all materials", "I have some materials", "I have all materials"],
       required=False),
)
