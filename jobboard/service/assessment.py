from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from jobboard.service.errors import ValidationError

DEFAULT_FIELD = "IT"


@dataclass(frozen=True)
class Question:
    id: int
    question: str
    options: tuple
    answer: int

    def public(self) -> dict:
        return {"id": self.id, "question": self.question, "options": list(self.options)}


def _bank(rows: Sequence[tuple]) -> List[Question]:
    return [
        Question(id=i, question=text, options=tuple(options), answer=answer)
        for i, (text, options, answer) in enumerate(rows, start=1)
    ]


QUESTION_BANK: Dict[str, List[Question]] = {
    "IT": _bank([
        ("What does HTML stand for?", ["Hyper Text Markup Language", "High Tech Modern Language", "Hyper Transfer Markup Language", "Home Tool Markup Language"], 0),
        ("Which programming language is known as the scripting language for the web?", ["Java", "Python", "JavaScript", "C++"], 2),
        ("What is the correct way to declare a variable in JavaScript?", ["var x = 5;", "variable x = 5;", "v x = 5;", "declare x = 5;"], 0),
        ("What is Git?", ["A programming language", "A version control system", "A database", "An operating system"], 1),
        ("Which of the following is a NoSQL database?", ["MySQL", "PostgreSQL", "MongoDB", "Oracle"], 2),
        ("What is CSS used for?", ["Designing database schemas", "Debugging code", "Styling web pages", "Server-side programming"], 2),
        ("What is an API?", ["Application Programming Interface", "Automated Program Integration", "Application Process Integration", "Automated Programming Interface"], 0),
        ("What is the purpose of a loop in programming?", ["To store data", "To make decisions", "To repeat code", "To define functions"], 2),
        ("What is cloud computing?", ["Programming for weather apps", "Using remote servers for storage and processing", "A type of computer hardware", "A programming language"], 1),
        ("What is cybersecurity?", ["Protecting computer systems from theft", "Designing user interfaces", "Writing code documentation", "Testing software"], 0),
    ]),
    "Marketing": _bank([
        ("What are the 4Ps of marketing?", ["Product, Price, Place, Promotion", "People, Process, Performance, Profit", "Planning, Processing, Purchasing, Promotion", "Product, People, Price, Process"], 0),
        ("What is SEO?", ["Search Engine Optimization", "Social Media Engagement", "Sales Enhancement Option", "Strategic Email Operation"], 0),
        ("What does KPI stand for?", ["Key Performance Indicator", "Knowledge Processing Index", "Key Process Integration", "Knowledge Performance Index"], 0),
        ("What is a target audience?", ["A group of competitors", "A specific group of consumers", "A marketing team", "A sales strategy"], 1),
        ("What is content marketing?", ["Creating content only for social media", "Writing product descriptions", "Creating and sharing valuable content", "Advertising products"], 2),
        ("What is a brand?", ["A company logo", "A product name", "The identity and perception of a company", "A type of product"], 2),
        ("What is market research?", ["Selling products", "Gathering information about customers and market", "Marketing to competitors", "Creating advertisements"], 1),
        ("What is a marketing funnel?", ["A sales tool", "A visualization of customer journey", "A pricing strategy", "A product design"], 1),
        ("What is email marketing?", ["Sending spam emails", "Sending targeted emails to prospects", "Writing business letters", "Creating email software"], 1),
        ("What is social media marketing?", ["Using social platforms for advertising", "Creating social networks", "Testing products", "Managing customer service"], 0),
    ]),
    "Design": _bank([
        ("What does UI stand for?", ["User Interface", "Universal Input", "Unified Integration", "User Input"], 0),
        ("What does UX stand for?", ["User Experience", "Universal Exchange", "User Extension", "Unified Experience"], 0),
        ("What is a color wheel?", ["A software tool", "A circular representation of colors", "A drawing tool", "A font type"], 1),
        ("What is typography?", ["Writing code", "The art of arranging text", "Creating logos", "Building websites"], 1),
        ("What is whitespace in design?", ["White colored areas only", "Empty space between elements", "Background color", "A software tool"], 1),
        ("What is a wireframe?", ["A coding framework", "A basic visual guide", "A font style", "A color palette"], 1),
        ("What is responsive design?", ["Designing for mobile only", "Creating adaptive layouts for different devices", "A graphic design style", "A typography technique"], 1),
        ("What are complementary colors?", ["Colors that are the same", "Colors opposite on the color wheel", "Primary colors", "Dark colors"], 1),
        ("What is hierarchy in design?", ["A company structure", "Visual arrangement to show importance", "A font style", "A color theory"], 1),
        ("What is a portfolio?", ["A collection of work samples", "A design software", "A color palette", "A font type"], 0),
    ]),
    "Finance": _bank([
        ("What is ROI?", ["Rate of Investment", "Return on Investment", "Revenue of Income", "Return on Income"], 1),
        ("What is a balance sheet?", ["A sheet that balances", "A financial statement showing assets and liabilities", "A tax form", "A bank statement"], 1),
        ("What is inflation?", ["Increase in prices over time", "Decrease in economy", "A type of tax", "A government policy"], 0),
        ("What is compound interest?", ["Simple calculation", "Interest calculated on initial principal and accumulated interest", "A fixed rate", "A tax form"], 1),
        ("What is a budget?", ["A yearly plan", "A plan for income and expenses", "A tax return", "A bank account"], 1),
        ("What is diversification?", ["Focusing on one investment", "Spreading investments to reduce risk", "A banking service", "A tax strategy"], 1),
        ("What is a stock?", ["A type of bond", "A share in company ownership", "A currency", "A real estate property"], 1),
        ("What is a credit score?", ["A loan amount", "A numerical representation of creditworthiness", "A bank account number", "A salary amount"], 1),
        ("What is an audit?", ["A financial investigation", "A tax form", "A loan application", "A bank service"], 0),
        ("What is profit?", ["Total revenue", "Money gained after expenses", "A business type", "A tax"], 1),
    ]),
    "Sales": _bank([
        ("What is a sales funnel?", ["A product delivery system", "A visual representation of the sales process", "A pricing strategy", "A marketing campaign"], 1),
        ("What is a lead?", ["A potential customer", "A sales manager", "A product type", "A store location"], 0),
        ("What is closing in sales?", ["Ending a conversation", "Completing a sale", "Closing a store", "Taking inventory"], 1),
        ("What is a value proposition?", ["A product price", "A statement explaining why customer should buy", "A sales pitch", "A marketing slogan"], 1),
        ("What is CRM?", ["Customer Relationship Management", "Sales Reporting Method", "Company Resource Management", "Client Retention Measure"], 0),
        ("What is cold calling?", ["Calling in winter", "Contacting potential customers who have not expressed interest", "Calling existing customers", "A marketing technique"], 1),
        ("What is upselling?", ["Selling at a higher price", "Encouraging customers to buy more expensive items", "A discount technique", "A product bundle"], 1),
        ("What is a quota?", ["A sales target", "A type of discount", "A product category", "A customer type"], 0),
        ("What is objection handling?", ["Dealing with customer concerns", "Solving technical problems", "Managing returns", "Processing complaints"], 0),
        ("What is follow-up?", ["A final meeting", "Continuing communication with prospects", "A sales report", "A product update"], 1),
    ]),
    "HR": _bank([
        ("What is recruitment?", ["Hiring new employees", "Training staff", "Firing employees", "Managing payroll"], 0),
        ("What is an interview?", ["A formal meeting to evaluate candidates", "A performance review", "A salary negotiation", "A training session"], 0),
        ("What is performance appraisal?", ["Evaluating employee performance", "Appraising company assets", "Reviewing products", "Assessing market value"], 0),
        ("What is employee engagement?", ["Hiring process", "The involvement and enthusiasm of employees", "A training program", "A benefits package"], 1),
        ("What is onboarding?", ["The process of integrating new employees", "Ending employment", "A performance review", "A salary discussion"], 0),
        ("What is a job description?", ["A list of job openings", "A document detailing job responsibilities", "An employee contract", "A company policy"], 1),
        ("What is workplace culture?", ["Office decorations", "The environment and values of an organization", "A dress code", "A company logo"], 1),
        ("What is employee retention?", ["Keeping employees in the organization", "A training program", "A performance metric", "A benefit plan"], 0),
        ("What is training and development?", ["Firing underperforming employees", "Improving employee skills and knowledge", "A recruitment method", "A compensation strategy"], 1),
        ("What is conflict resolution?", ["A hiring process", "Finding solutions to workplace disagreements", "A performance review", "A termination procedure"], 1),
    ]),
    "Engineering": _bank([
        ("What is the first law of thermodynamics?", ["Energy cannot be created or destroyed", "Energy can be created", "Energy decreases over time", "Energy increases forever"], 0),
        ("What is CAD?", ["Computer Aided Design", "Computer Application Development", "Computer Analysis Data", "Computer Algorithm Design"], 0),
        ("What is stress in materials?", ["Mental pressure", "Force per unit area", "A type of strain", "A manufacturing defect"], 1),
        ("What is a lever?", ["A simple machine", "A measurement unit", "A type of material", "A power source"], 0),
        ("What is Ohm's law?", ["V = IR", "E = mc^2", "F = ma", "PV = nRT"], 0),
        ("What is a pulley?", ["A lifting device", "A measuring tool", "A power source", "A material type"], 0),
        ("What is tensile strength?", ["The ability to conduct electricity", "The maximum stress a material can withstand", "The ability to resist heat", "The flexibility of a material"], 1),
        ("What is a gear?", ["A rotating machine element", "A measurement tool", "A power source", "A safety device"], 0),
        ("What is structural analysis?", ["Analyzing chemical compounds", "Examining the behavior of structures under loads", "Testing materials", "Designing circuits"], 1),
        ("What is thermodynamics?", ["The study of heat and work", "The study of motion", "The study of electricity", "The study of materials"], 0),
    ]),
}


def resolve_field(field: Optional[str]) -> str:
    return field if field in QUESTION_BANK else DEFAULT_FIELD


def skill_level(score: int) -> str:
    if score >= 90:
        return "Expert"
    if score >= 70:
        return "Advanced"
    if score >= 50:
        return "Intermediate"
    return "Beginner"


class AssessmentService:
    """Serve and grade the multiple-choice skills assessment."""

    def __init__(self, *, question_count: int = 10, rng: Optional[random.Random] = None) -> None:
        self.question_count = question_count
        self._rng = rng or random.SystemRandom()

    def questions_for(self, field: Optional[str]) -> tuple[str, List[dict]]:
        resolved = resolve_field(field)
        bank = QUESTION_BANK[resolved]
        picked = self._rng.sample(bank, min(self.question_count, len(bank)))
        return resolved, [q.public() for q in picked]

    def grade(self, field: Optional[str], answers: Sequence[tuple[int, int]]) -> dict:
        """Score ``(question_id, selected_option)`` pairs against the bank."""
        if not answers:
            raise ValidationError("answers are required")
        ids = [question_id for question_id, _ in answers]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValidationError(
                "each question may be answered only once",
                detail={"duplicate_question_ids": duplicates},
            )
        resolved = resolve_field(field)
        by_id = {q.id: q for q in QUESTION_BANK[resolved]}
        results = []
        correct = 0
        for question_id, selected in answers:
            question = by_id.get(question_id)
            is_correct = question is not None and selected == question.answer
            if is_correct:
                correct += 1
            results.append(
                {
                    "question_id": question_id,
                    "selected_answer": selected,
                    "correct_answer": question.answer if question else None,
                    "is_correct": is_correct,
                }
            )
        total = len(answers)
        score = round(correct / total * 100)
        return {
            "field": resolved,
            "score": score,
            "correct_answers": correct,
            "total_questions": total,
            "skill_level": skill_level(score),
            "results": results,
        }
