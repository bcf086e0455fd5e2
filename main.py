import os
from contextlib import asynccontextmanager
from typing import Optional, List, Any, Dict

from fastapi import FastAPI, Depends, File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, EmailStr
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

import config
import geocoding
import uploads
from aggregates import run_post_commit
from auth import create_access_token, get_current_user, hash_password, require_role, verify_password
from database import create_document, db, ensure_indexes, get_db, get_documents, now, sanitize, to_obj_id
from errors import NotFound, UpstreamFailure, ValidationFailure, Unauthorized, register_error_handlers
from logging_config import get_logger, setup_logging
from permissions import Principal, ensure_can_modify
from query import advanced_results, populate_documents
from schemas import (
    Bootcamp as BootcampSchema,
    Career,
    Course as CourseSchema,
    Location,
    Review as ReviewSchema,
    Role,
    Skill,
    URL_PATTERN,
    User as UserSchema,
)

setup_logging(config.LOG_LEVEL, config.LOG_JSON)
logger = get_logger(__name__)

# Radius of the Earth in kilometres; radius search distances are kilometres
EARTH_RADIUS_KM = 6378

PUBLISHERS = ("publisher", "admin")
REVIEWERS = ("user", "admin")
BOOTCAMP_SUMMARY = ("bootcamp", "bootcamp", ("name", "description"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    # The unique indexes back the one-review-per-user and unique-email rules
    try:
        ensure_indexes(db)
    except PyMongoError as e:
        logger.error("Could not ensure indexes on %s: %s", config.DATABASE_NAME, e)
        raise
    yield


# App and CORS
app = FastAPI(title="Bootcamp Directory API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)


# Helpers

def find_or_404(db: Database, collection: str, id_str: str, label: str) -> Dict:
    doc = db[collection].find_one({"_id": to_obj_id(id_str)})
    if not doc:
        raise NotFound(f"{label} not found with id of {id_str}")
    return doc


def update_document(db: Database, collection: str, doc: Dict, changes: Dict) -> Dict:
    changes["updated_at"] = now()
    updated = db[collection].find_one_and_update(
        {"_id": doc["_id"]},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        # deleted between load and update
        raise NotFound(f"{collection.capitalize()} not found with id of {doc['_id']}")
    return updated


def children_of(db: Database, collection: str, bootcamp_id: str) -> Dict[str, Any]:
    docs = get_documents(db, collection, {"bootcamp": bootcamp_id})
    return {"success": True, "count": len(docs), "data": docs}


def changes_from(payload: BaseModel) -> Dict[str, Any]:
    return payload.model_dump(exclude_unset=True, exclude_none=True)


# Request Models
class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Role = "user"

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class CreateUserRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Role = "user"

class UpdateUserRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)
    role: Optional[Role] = None

class CreateBootcampRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: str = Field(..., min_length=1, max_length=500)
    website: Optional[str] = Field(None, pattern=URL_PATTERN)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    address: str = Field(..., min_length=1)
    location: Optional[Location] = None
    careers: List[Career] = Field(..., min_length=1)
    housing: bool = False
    job_assistance: bool = False
    job_guarantee: bool = False
    accept_gi: bool = False

class UpdateBootcampRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    website: Optional[str] = Field(None, pattern=URL_PATTERN)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    address: Optional[str] = Field(None, min_length=1)
    location: Optional[Location] = None
    careers: Optional[List[Career]] = Field(None, min_length=1)
    housing: Optional[bool] = None
    job_assistance: Optional[bool] = None
    job_guarantee: Optional[bool] = None
    accept_gi: Optional[bool] = None

class CreateCourseRequest(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    weeks: str = Field(..., min_length=1)
    tuition: float = Field(..., ge=0)
    minimum_skill: Skill
    scholarship_available: bool = False

class UpdateCourseRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    weeks: Optional[str] = Field(None, min_length=1)
    tuition: Optional[float] = Field(None, ge=0)
    minimum_skill: Optional[Skill] = None
    scholarship_available: Optional[bool] = None

class CreateReviewRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    text: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=10)

class UpdateReviewRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    text: Optional[str] = Field(None, min_length=1)
    rating: Optional[int] = Field(None, ge=1, le=10)


# Auth Routes
@app.post("/auth/register")
def register(payload: RegisterRequest, db: Database = Depends(get_db)):
    if payload.role == "admin":
        raise ValidationFailure("Cannot register as admin")
    user_doc = create_document(db, "user", UserSchema(
        name=payload.name,
        email=payload.email,
        role=payload.role,
        password_hash=hash_password(payload.password),
    ))
    logger.info("User %s registered as %s", user_doc["_id"], payload.role)
    return {"success": True, "token": create_access_token({"sub": str(user_doc["_id"])})}

@app.post("/auth/login")
def login(payload: LoginRequest, db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": payload.email})
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise Unauthorized("Invalid credentials")
    return {"success": True, "token": create_access_token({"sub": str(user["_id"])})}

@app.get("/auth/me")
def me(current_user: Principal = Depends(get_current_user), db: Database = Depends(get_db)):
    return {"success": True, "data": sanitize(find_or_404(db, "user", current_user.id, "User"))}


# Admin user management
@app.get("/auth/users")
def get_users(request: Request, admin=Depends(require_role("admin")), db: Database = Depends(get_db)):
    return advanced_results(db["user"], request.query_params.multi_items(), schema=UserSchema)

@app.get("/auth/users/{user_id}")
def get_user(user_id: str, admin=Depends(require_role("admin")), db: Database = Depends(get_db)):
    return {"success": True, "data": sanitize(find_or_404(db, "user", user_id, "User"))}

@app.post("/auth/users", status_code=201)
def create_user(payload: CreateUserRequest, admin=Depends(require_role("admin")), db: Database = Depends(get_db)):
    user_doc = create_document(db, "user", UserSchema(
        name=payload.name,
        email=payload.email,
        role=payload.role,
        password_hash=hash_password(payload.password),
    ))
    return {"success": True, "data": sanitize(user_doc)}

@app.put("/auth/users/{user_id}")
def update_user(user_id: str, payload: UpdateUserRequest, admin=Depends(require_role("admin")), db: Database = Depends(get_db)):
    user = find_or_404(db, "user", user_id, "User")
    changes = changes_from(payload)
    if "password" in changes:
        changes["password_hash"] = hash_password(changes.pop("password"))
    return {"success": True, "data": sanitize(update_document(db, "user", user, changes))}

@app.delete("/auth/users/{user_id}")
def delete_user(user_id: str, admin=Depends(require_role("admin")), db: Database = Depends(get_db)):
    user = find_or_404(db, "user", user_id, "User")
    db["user"].delete_one({"_id": user["_id"]})
    return {"success": True, "data": {}}


# Bootcamp Routes
@app.get("/bootcamps")
def get_bootcamps(request: Request, db: Database = Depends(get_db)):
    return advanced_results(db["bootcamp"], request.query_params.multi_items(), schema=BootcampSchema)

@app.get("/bootcamps/radius/{zipcode}/{distance}")
def get_bootcamps_in_radius(zipcode: str, distance: float, db: Database = Depends(get_db)):
    """Bootcamps within `distance` kilometres of the zipcode's coordinates."""
    if distance < 0:
        raise ValidationFailure("Distance must not be negative")
    locations = geocoding.geocode(zipcode)
    if not locations:
        raise NotFound(f"No location found for zipcode {zipcode}")
    lat, lng = locations[0].latitude, locations[0].longitude

    # Spherical cap radius in radians
    radius = distance / EARTH_RADIUS_KM
    bootcamps = [sanitize(b) for b in db["bootcamp"].find({
        "location": {"$geoWithin": {"$centerSphere": [[lng, lat], radius]}},
    })]
    return {"success": True, "count": len(bootcamps), "data": bootcamps}

@app.get("/bootcamps/{bootcamp_id}")
def get_bootcamp(bootcamp_id: str, db: Database = Depends(get_db)):
    return {"success": True, "data": sanitize(find_or_404(db, "bootcamp", bootcamp_id, "Bootcamp"))}

@app.post("/bootcamps", status_code=201)
def create_bootcamp(payload: CreateBootcampRequest, current_user: Principal = Depends(require_role(*PUBLISHERS)), db: Database = Depends(get_db)):
    # Publishers own at most one bootcamp; admins are not limited
    published = db["bootcamp"].find_one({"user": current_user.id})
    if published and current_user.role != "admin":
        raise ValidationFailure(f"The user with ID {current_user.id} has already published a bootcamp")
    bootcamp = create_document(db, "bootcamp", BootcampSchema(**payload.model_dump(), user=current_user.id))
    logger.info("Bootcamp %s created", bootcamp["_id"], extra={"user_id": current_user.id})
    return {"success": True, "data": sanitize(bootcamp)}

@app.put("/bootcamps/{bootcamp_id}")
def update_bootcamp(bootcamp_id: str, payload: UpdateBootcampRequest, current_user: Principal = Depends(require_role(*PUBLISHERS)), db: Database = Depends(get_db)):
    bootcamp = find_or_404(db, "bootcamp", bootcamp_id, "Bootcamp")
    ensure_can_modify(current_user, bootcamp["user"], f"bootcamp {bootcamp_id}", "update")
    return {"success": True, "data": sanitize(update_document(db, "bootcamp", bootcamp, changes_from(payload)))}

@app.delete("/bootcamps/{bootcamp_id}")
def delete_bootcamp(bootcamp_id: str, current_user: Principal = Depends(require_role(*PUBLISHERS)), db: Database = Depends(get_db)):
    bootcamp = find_or_404(db, "bootcamp", bootcamp_id, "Bootcamp")
    ensure_can_modify(current_user, bootcamp["user"], f"bootcamp {bootcamp_id}", "delete")
    # Courses and reviews of the bootcamp are left in place
    db["bootcamp"].delete_one({"_id": bootcamp["_id"]})
    logger.info("Bootcamp %s deleted", bootcamp_id, extra={"user_id": current_user.id})
    return {"success": True, "data": {}}

@app.put("/bootcamps/{bootcamp_id}/photo")
def upload_bootcamp_photo(
    bootcamp_id: str,
    file: Optional[UploadFile] = File(None),
    current_user: Principal = Depends(require_role(*PUBLISHERS)),
    db: Database = Depends(get_db),
):
    bootcamp = find_or_404(db, "bootcamp", bootcamp_id, "Bootcamp")
    ensure_can_modify(current_user, bootcamp["user"], f"bootcamp {bootcamp_id}", "update")
    if file is None or not file.filename:
        raise ValidationFailure("Please upload a file")

    content = uploads.read_photo(file)
    filename = uploads.photo_filename(str(bootcamp["_id"]), file.filename)
    try:
        uploads.save_file(content, filename)
    except OSError as e:
        logger.error("Saving %s failed: %s", filename, e)
        raise UpstreamFailure("Problem with file upload")

    db["bootcamp"].update_one({"_id": bootcamp["_id"]}, {"$set": {"photo": filename, "updated_at": now()}})
    return {"success": True, "data": filename}


# Course Routes
@app.get("/courses")
def get_courses(request: Request, db: Database = Depends(get_db)):
    return advanced_results(db["course"], request.query_params.multi_items(), populate=[BOOTCAMP_SUMMARY], schema=CourseSchema)

@app.get("/bootcamps/{bootcamp_id}/courses")
def get_bootcamp_courses(bootcamp_id: str, db: Database = Depends(get_db)):
    return children_of(db, "course", bootcamp_id)

@app.get("/courses/{course_id}")
def get_course(course_id: str, db: Database = Depends(get_db)):
    course = sanitize(find_or_404(db, "course", course_id, "Course"))
    populate_documents(db, [course], [BOOTCAMP_SUMMARY])
    return {"success": True, "data": course}

@app.post("/bootcamps/{bootcamp_id}/courses", status_code=201)
def create_course(bootcamp_id: str, payload: CreateCourseRequest, current_user: Principal = Depends(require_role(*PUBLISHERS)), db: Database = Depends(get_db)):
    bootcamp = find_or_404(db, "bootcamp", bootcamp_id, "Bootcamp")
    ensure_can_modify(current_user, bootcamp["user"], f"bootcamp {bootcamp_id}", "add a course to")
    course = create_document(db, "course", CourseSchema(**payload.model_dump(), bootcamp=bootcamp_id, user=current_user.id))
    run_post_commit(db, "course", bootcamp_id)
    return {"success": True, "data": sanitize(course)}

@app.put("/courses/{course_id}")
def update_course(course_id: str, payload: UpdateCourseRequest, current_user: Principal = Depends(require_role(*PUBLISHERS)), db: Database = Depends(get_db)):
    course = find_or_404(db, "course", course_id, "Course")
    ensure_can_modify(current_user, course["user"], f"course {course_id}", "update")
    course = update_document(db, "course", course, changes_from(payload))
    run_post_commit(db, "course", course["bootcamp"])
    return {"success": True, "data": sanitize(course)}

@app.delete("/courses/{course_id}")
def delete_course(course_id: str, current_user: Principal = Depends(require_role(*PUBLISHERS)), db: Database = Depends(get_db)):
    course = find_or_404(db, "course", course_id, "Course")
    ensure_can_modify(current_user, course["user"], f"course {course_id}", "delete")
    db["course"].delete_one({"_id": course["_id"]})
    run_post_commit(db, "course", course["bootcamp"])
    return {"success": True, "data": {}}


# Review Routes
@app.get("/reviews")
def get_reviews(request: Request, db: Database = Depends(get_db)):
    return advanced_results(db["review"], request.query_params.multi_items(), populate=[BOOTCAMP_SUMMARY], schema=ReviewSchema)

@app.get("/bootcamps/{bootcamp_id}/reviews")
def get_bootcamp_reviews(bootcamp_id: str, db: Database = Depends(get_db)):
    return children_of(db, "review", bootcamp_id)

@app.get("/reviews/{review_id}")
def get_review(review_id: str, db: Database = Depends(get_db)):
    review = sanitize(find_or_404(db, "review", review_id, "Review"))
    populate_documents(db, [review], [BOOTCAMP_SUMMARY])
    return {"success": True, "data": review}

@app.post("/bootcamps/{bootcamp_id}/reviews", status_code=201)
def create_review(bootcamp_id: str, payload: CreateReviewRequest, current_user: Principal = Depends(require_role(*REVIEWERS)), db: Database = Depends(get_db)):
    find_or_404(db, "bootcamp", bootcamp_id, "Bootcamp")
    # (bootcamp, user) is a unique index: a second review is a duplicate key
    review = create_document(db, "review", ReviewSchema(**payload.model_dump(), bootcamp=bootcamp_id, user=current_user.id))
    run_post_commit(db, "review", bootcamp_id)
    return {"success": True, "data": sanitize(review)}

@app.put("/reviews/{review_id}")
def update_review(review_id: str, payload: UpdateReviewRequest, current_user: Principal = Depends(require_role(*REVIEWERS)), db: Database = Depends(get_db)):
    review = find_or_404(db, "review", review_id, "Review")
    ensure_can_modify(current_user, review["user"], f"review {review_id}", "update")
    review = update_document(db, "review", review, changes_from(payload))
    run_post_commit(db, "review", review["bootcamp"])
    return {"success": True, "data": sanitize(review)}

@app.delete("/reviews/{review_id}")
def delete_review(review_id: str, current_user: Principal = Depends(require_role(*REVIEWERS)), db: Database = Depends(get_db)):
    review = find_or_404(db, "review", review_id, "Review")
    ensure_can_modify(current_user, review["user"], f"review {review_id}", "delete")
    db["review"].delete_one({"_id": review["_id"]})
    run_post_commit(db, "review", review["bootcamp"])
    return {"success": True, "data": {}}


# Utility endpoints
@app.get("/")
def root():
    return {"message": "Bootcamp Directory API running"}

@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    try:
        collections = db.list_collection_names()
        return {"backend": "ok", "database": "ok", "collections": collections}
    except PyMongoError as e:
        return {"backend": "ok", "database": f"error: {e}"}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
